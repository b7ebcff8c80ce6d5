from django.db import models
from django.conf import settings
from apps.catalog.models import Product
from apps.warehouse.models import Warehouse
from apps.inventory.models import InventoryStock
from apps.utils.models import TimestampedModel


class MovementType(models.TextChoices):
    ADJUSTMENT_INCREASE = "adjustment_increase", "Adjustment Increase"
    ADJUSTMENT_DECREASE = "adjustment_decrease", "Adjustment Decrease"
    TRANSFER_IN = "transfer_in", "Transfer In"
    TRANSFER_OUT = "transfer_out", "Transfer Out"
    PURCHASE_RECEIVE = "purchase_receive", "Purchase Receive"
    SALE_FULFILL = "sale_fulfill", "Sale Fulfill"
    RETURN_CUSTOMER = "return_customer", "Customer Return"
    RETURN_SUPPLIER = "return_supplier", "Supplier Return"
    DAMAGE_WRITE_OFF = "damage_write_off", "Damage Write-off"
    EXPIRY_WRITE_OFF = "expiry_write_off", "Expiry Write-off"


# Movement types that add stock; every other type removes it.
INBOUND_TYPES = frozenset({
    MovementType.ADJUSTMENT_INCREASE,
    MovementType.TRANSFER_IN,
    MovementType.PURCHASE_RECEIVE,
    MovementType.RETURN_CUSTOMER,
})

AUTO_APPROVABLE_TYPES = frozenset({
    MovementType.ADJUSTMENT_INCREASE,
    MovementType.ADJUSTMENT_DECREASE,
})


class MovementStatus(models.TextChoices):
    PENDING = "pending", "Pending Approval"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    APPLIED = "applied", "Applied"


class StockMovement(TimestampedModel):
    """
    A requested change to one InventoryStock that goes through approval.

    pending -> approved -> applied, or pending -> rejected.
    quantity_before/after are snapshots of quantity_available at creation.
    """
    reference_number = models.CharField(max_length=32, unique=True, editable=False)

    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='stock_movements')
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name='stock_movements')
    inventory = models.ForeignKey(
        InventoryStock,
        on_delete=models.PROTECT,
        related_name='movements'
    )

    movement_type = models.CharField(max_length=30, choices=MovementType.choices)
    quantity_moved = models.IntegerField(help_text="Signed: positive adds stock, negative removes it")
    quantity_before = models.IntegerField()
    quantity_after = models.IntegerField()

    unit_cost = models.DecimalField(max_digits=12, decimal_places=4, default=0)
    total_value = models.DecimalField(max_digits=16, decimal_places=4, default=0)

    reason = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    related_document_type = models.CharField(max_length=50, blank=True)
    related_document_id = models.CharField(max_length=100, blank=True)

    status = models.CharField(
        max_length=20,
        choices=MovementStatus.choices,
        default=MovementStatus.PENDING,
        db_index=True
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='created_stock_movements'
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='approved_stock_movements'
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    applied_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='movement_status_idx'),
            models.Index(fields=['product', 'warehouse'], name='movement_product_wh_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(quantity_moved=0),
                name='movement_quantity_non_zero'
            ),
        ]

    def __str__(self):
        return f"{self.reference_number} {self.movement_type} {self.quantity_moved:+d} [{self.status}]"

    @property
    def is_inbound(self):
        return self.movement_type in INBOUND_TYPES

    @property
    def can_be_approved(self):
        return self.status == MovementStatus.PENDING

    @property
    def can_be_rejected(self):
        return self.status == MovementStatus.PENDING
