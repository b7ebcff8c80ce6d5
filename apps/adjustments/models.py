from django.db import models
from django.conf import settings
from django.utils import timezone
from apps.inventory.models import InventoryStock
from apps.utils.models import AppendOnlyModel


class StockAdjustment(AppendOnlyModel):
    """
    One ad-hoc correction of on-hand stock (damage, recount, found goods...).
    Written once together with the on-hand change it describes.
    """
    class AdjustmentType(models.TextChoices):
        INCREASE = "increase", "Increase"
        DECREASE = "decrease", "Decrease"

    class Reason(models.TextChoices):
        DAMAGE = "damage", "Damaged Goods"
        THEFT = "theft", "Theft/Loss"
        FOUND = "found", "Found/Discovered"
        EXPIRED = "expired", "Expired Products"
        RETURNED = "returned", "Customer Returns"
        TRANSFER_IN = "transfer_in", "Transfer In"
        TRANSFER_OUT = "transfer_out", "Transfer Out"
        CORRECTION = "correction", "Data Correction"
        RECOUNT = "recount", "Physical Recount"
        OTHER = "other", "Other (See Notes)"

    inventory = models.ForeignKey(
        InventoryStock,
        on_delete=models.PROTECT,
        related_name='adjustments'
    )
    adjustment_type = models.CharField(max_length=10, choices=AdjustmentType.choices)
    quantity_adjusted = models.PositiveIntegerField()
    quantity_before = models.IntegerField()
    quantity_after = models.IntegerField()
    reason = models.CharField(max_length=20, choices=Reason.choices)
    notes = models.TextField(blank=True)

    reference_number = models.CharField(max_length=32, unique=True, editable=False)
    adjusted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='stock_adjustments'
    )
    adjusted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-adjusted_at']
        indexes = [
            models.Index(fields=['inventory', '-adjusted_at'], name='adjustment_inventory_idx'),
        ]

    def __str__(self):
        sign = "+" if self.adjustment_type == self.AdjustmentType.INCREASE else "-"
        return f"{self.reference_number} ({sign}{self.quantity_adjusted})"
