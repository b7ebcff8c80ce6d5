from django.db import models
from django.conf import settings
from django.utils import timezone
from apps.catalog.models import Product
from apps.warehouse.models import Warehouse
from apps.utils.models import TimestampedModel, AppendOnlyModel


class TransferStatus(models.TextChoices):
    PENDING = "pending", "Pending Approval"
    APPROVED = "approved", "Approved"
    IN_TRANSIT = "in_transit", "In Transit"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


OPEN_STATUSES = (
    TransferStatus.PENDING,
    TransferStatus.APPROVED,
    TransferStatus.IN_TRANSIT,
)


class StockTransfer(TimestampedModel):
    """
    Two-phase move of one product between warehouses.

    pending -> approved -> in_transit -> completed
    pending | approved | in_transit -> cancelled

    Source on-hand is debited when the transfer ships and re-credited if an
    in-transit transfer is cancelled. The destination is credited on completion.
    """
    reference_number = models.CharField(max_length=32, unique=True, editable=False)

    from_warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name='outgoing_transfers')
    to_warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name='incoming_transfers')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='stock_transfers')
    quantity_transferred = models.PositiveIntegerField()

    transfer_status = models.CharField(
        max_length=20,
        choices=TransferStatus.choices,
        default=TransferStatus.PENDING,
        db_index=True
    )
    notes = models.TextField(blank=True)
    cancellation_reason = models.TextField(blank=True)

    initiated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='initiated_transfers'
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='approved_transfers'
    )
    shipped_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='shipped_transfers'
    )
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='completed_transfers'
    )
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='cancelled_transfers'
    )

    initiated_at = models.DateTimeField(default=timezone.now)
    approved_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-initiated_at']
        indexes = [
            models.Index(fields=['transfer_status', 'initiated_at'], name='transfer_status_idx'),
            models.Index(fields=['product', 'from_warehouse', 'to_warehouse'], name='transfer_route_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(from_warehouse=models.F('to_warehouse')),
                name='transfer_distinct_warehouses'
            ),
            models.CheckConstraint(
                condition=models.Q(quantity_transferred__gt=0),
                name='transfer_quantity_positive'
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(transfer_status=TransferStatus.CANCELLED) & ~models.Q(cancellation_reason="")
                ) | (
                    ~models.Q(transfer_status=TransferStatus.CANCELLED) & models.Q(cancellation_reason="")
                ),
                name='transfer_cancellation_reason_iff_cancelled'
            ),
        ]

    def __str__(self):
        return f"{self.reference_number} [{self.transfer_status}]"

    @property
    def can_be_approved(self):
        return self.transfer_status == TransferStatus.PENDING

    @property
    def can_be_shipped(self):
        return self.transfer_status == TransferStatus.APPROVED

    @property
    def can_be_completed(self):
        return self.transfer_status == TransferStatus.IN_TRANSIT

    @property
    def can_be_cancelled(self):
        return self.transfer_status in OPEN_STATUSES

    @property
    def can_be_edited(self):
        return self.transfer_status == TransferStatus.PENDING


class StockTransferEvent(AppendOnlyModel):
    """
    Audit trail: one row per transfer transition.
    """
    class Activity(models.TextChoices):
        INITIATED = "initiated", "Initiated"
        APPROVED = "approved", "Approved"
        IN_TRANSIT = "in_transit", "Marked In Transit"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"
        UPDATED = "updated", "Updated"

    transfer = models.ForeignKey(StockTransfer, on_delete=models.CASCADE, related_name='events')
    reference_number = models.CharField(max_length=32)
    activity = models.CharField(max_length=20, choices=Activity.choices)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='+'
    )
    from_status = models.CharField(max_length=20, blank=True)
    to_status = models.CharField(max_length=20)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"{self.reference_number} {self.activity}"
