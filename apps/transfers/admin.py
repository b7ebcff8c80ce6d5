from django.contrib import admin
from .models import StockTransfer, StockTransferEvent


class StockTransferEventInline(admin.TabularInline):
    model = StockTransferEvent
    extra = 0
    can_delete = False
    readonly_fields = ('created_at', 'activity', 'from_status', 'to_status', 'actor', 'notes')
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(StockTransfer)
class StockTransferAdmin(admin.ModelAdmin):
    list_display = ('reference_number', 'product', 'from_warehouse', 'to_warehouse', 'quantity_transferred', 'transfer_status', 'initiated_at')
    list_filter = ('transfer_status', 'from_warehouse', 'to_warehouse')
    search_fields = ('reference_number', 'product__sku_code')
    # Lifecycle is driven by TransferService only
    readonly_fields = [f.name for f in StockTransfer._meta.fields]
    inlines = [StockTransferEventInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
