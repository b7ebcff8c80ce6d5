from rest_framework import serializers
from .models import StockTransfer, StockTransferEvent


class StockTransferEventSerializer(serializers.ModelSerializer):
    actor = serializers.CharField(source='actor.username', read_only=True, default=None)

    class Meta:
        model = StockTransferEvent
        fields = ['activity', 'from_status', 'to_status', 'actor', 'notes', 'created_at']


class StockTransferSerializer(serializers.ModelSerializer):
    sku_code = serializers.CharField(source='product.sku_code', read_only=True)
    from_warehouse_code = serializers.CharField(source='from_warehouse.code', read_only=True)
    to_warehouse_code = serializers.CharField(source='to_warehouse.code', read_only=True)
    initiated_by = serializers.CharField(source='initiated_by.username', read_only=True, default=None)
    approved_by = serializers.CharField(source='approved_by.username', read_only=True, default=None)

    class Meta:
        model = StockTransfer
        fields = [
            'id', 'reference_number', 'product_id', 'sku_code',
            'from_warehouse_id', 'from_warehouse_code', 'to_warehouse_id', 'to_warehouse_code',
            'quantity_transferred', 'transfer_status', 'notes', 'cancellation_reason',
            'initiated_by', 'approved_by',
            'initiated_at', 'approved_at', 'shipped_at', 'completed_at', 'cancelled_at',
        ]


class StockTransferDetailSerializer(StockTransferSerializer):
    events = StockTransferEventSerializer(many=True, read_only=True)

    class Meta(StockTransferSerializer.Meta):
        fields = StockTransferSerializer.Meta.fields + ['events']


class TransferCreateSerializer(serializers.Serializer):
    from_warehouse_id = serializers.IntegerField()
    to_warehouse_id = serializers.IntegerField()
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, data):
        if data['from_warehouse_id'] == data['to_warehouse_id']:
            raise serializers.ValidationError("Source and destination warehouses must be different.")
        return data


class TransferUpdateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


class BulkIdsSerializer(serializers.Serializer):
    transfer_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class BulkCancelSerializer(BulkIdsSerializer):
    reason = serializers.CharField(max_length=500)
