from django.contrib import admin
from .models import StockMovement


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ('reference_number', 'movement_type', 'product', 'warehouse', 'quantity_moved', 'total_value', 'status', 'created_at')
    list_filter = ('status', 'movement_type', 'warehouse')
    search_fields = ('reference_number', 'product__sku_code', 'related_document_id')
    # Status changes go through MovementService.approve_movement / reject_movement
    readonly_fields = [f.name for f in StockMovement._meta.fields]

    def has_add_permission(self, request):
        return False
