from rest_framework import serializers
from .models import InventoryStock, InventoryLedgerEntry


class InventoryStockSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    sku_code = serializers.CharField(source='product.sku_code', read_only=True)
    warehouse_code = serializers.CharField(source='warehouse.code', read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = InventoryStock
        fields = [
            'id', 'warehouse_id', 'warehouse_code',
            'product_id', 'product_name', 'sku_code',
            'quantity_on_hand', 'quantity_reserved', 'quantity_available',
            'low_stock_threshold', 'is_low_stock', 'notes',
            'created_at', 'updated_at',
        ]


class InventoryCreateSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    warehouse_id = serializers.IntegerField()
    quantity_on_hand = serializers.IntegerField(min_value=0, default=0)
    quantity_reserved = serializers.IntegerField(min_value=0, default=0)
    low_stock_threshold = serializers.IntegerField(min_value=0, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class QuantitySerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")


class LedgerEntrySerializer(serializers.ModelSerializer):
    performed_by = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = InventoryLedgerEntry
        fields = [
            'id', 'created_at', 'entry_type',
            'quantity_change', 'reserved_change',
            'on_hand_after', 'reserved_after', 'available_after',
            'reference_type', 'reference', 'notes', 'performed_by',
        ]


class InventoryUpdateSerializer(serializers.Serializer):
    low_stock_threshold = serializers.IntegerField(min_value=0, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
