from django.contrib import admin
from .models import StockAdjustment


@admin.register(StockAdjustment)
class StockAdjustmentAdmin(admin.ModelAdmin):
    list_display = ('reference_number', 'inventory', 'adjustment_type', 'quantity_adjusted', 'reason', 'adjusted_at')
    list_filter = ('adjustment_type', 'reason')
    search_fields = ('reference_number', 'inventory__product__sku_code')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
