from rest_framework import serializers
from .models import StockMovement, MovementType


class StockMovementSerializer(serializers.ModelSerializer):
    sku_code = serializers.CharField(source='product.sku_code', read_only=True)
    warehouse_code = serializers.CharField(source='warehouse.code', read_only=True)
    created_by = serializers.CharField(source='created_by.username', read_only=True, default=None)
    approved_by = serializers.CharField(source='approved_by.username', read_only=True, default=None)

    class Meta:
        model = StockMovement
        fields = [
            'id', 'reference_number', 'product_id', 'sku_code', 'warehouse_id', 'warehouse_code',
            'movement_type', 'quantity_moved', 'quantity_before', 'quantity_after',
            'unit_cost', 'total_value', 'reason', 'notes', 'metadata',
            'related_document_type', 'related_document_id', 'status',
            'created_by', 'approved_by', 'approved_at', 'applied_at', 'created_at',
        ]


class MovementCreateSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    warehouse_id = serializers.IntegerField()
    movement_type = serializers.ChoiceField(choices=MovementType.choices)
    quantity_moved = serializers.IntegerField()
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=4, min_value=0, required=False)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    metadata = serializers.DictField(required=False)
    related_document_type = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    related_document_id = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")

    def validate_quantity_moved(self, value):
        if value == 0:
            raise serializers.ValidationError("Movement quantity cannot be zero.")
        return value


class MovementRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)
