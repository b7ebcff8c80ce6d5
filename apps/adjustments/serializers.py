from rest_framework import serializers
from .models import StockAdjustment


class StockAdjustmentSerializer(serializers.ModelSerializer):
    sku_code = serializers.CharField(source='inventory.product.sku_code', read_only=True)
    warehouse_code = serializers.CharField(source='inventory.warehouse.code', read_only=True)
    reason_label = serializers.CharField(source='get_reason_display', read_only=True)
    adjusted_by = serializers.CharField(source='adjusted_by.username', read_only=True, default=None)

    class Meta:
        model = StockAdjustment
        fields = [
            'id', 'reference_number', 'inventory_id', 'sku_code', 'warehouse_code',
            'adjustment_type', 'quantity_adjusted', 'quantity_before', 'quantity_after',
            'reason', 'reason_label', 'notes', 'adjusted_by', 'adjusted_at',
        ]


class AdjustmentCreateSerializer(serializers.Serializer):
    inventory_id = serializers.UUIDField()
    adjustment_type = serializers.ChoiceField(choices=StockAdjustment.AdjustmentType.choices)
    quantity_adjusted = serializers.IntegerField()
    reason = serializers.ChoiceField(choices=StockAdjustment.Reason.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_quantity_adjusted(self, value):
        if value == 0:
            raise serializers.ValidationError("Adjustment cannot be zero.")
        return value
