# apps/inventory/admin.py
from django.contrib import admin
from .models import InventoryStock, InventoryLedgerEntry


@admin.register(InventoryStock)
class InventoryStockAdmin(admin.ModelAdmin):
    list_display = ('product', 'warehouse', 'quantity_on_hand', 'quantity_reserved', 'quantity_available')
    list_filter = ('warehouse',)
    search_fields = ('product__name', 'product__sku_code')
    # Quantities only change through InventoryService
    readonly_fields = ('quantity_on_hand', 'quantity_reserved', 'quantity_available')


@admin.register(InventoryLedgerEntry)
class InventoryLedgerEntryAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'entry_type', 'inventory', 'quantity_change', 'reserved_change', 'reference')
    list_filter = ('entry_type', 'created_at')
    search_fields = ('reference', 'inventory__product__sku_code')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
