from django.db import models
from django.conf import settings
from apps.catalog.models import Product
from apps.warehouse.models import Warehouse
from apps.utils.models import TimestampedModel, AppendOnlyModel
from apps.utils.exceptions import (
    InsufficientAvailabilityError,
    InvalidQuantityError,
    NegativeQuantityError,
)


def require_positive_quantity(qty):
    if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
        raise InvalidQuantityError(f"Quantity must be a positive integer, got {qty!r}.")
    return qty


class InventoryStock(TimestampedModel):
    """
    Source of truth for current quantities of one product in one warehouse.

    quantity_available is persisted but always derived:
    available = on_hand - reserved, recomputed in save().
    """
    OPERAND_FIELDS = ("quantity_on_hand", "quantity_reserved")

    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        related_name='inventory_stocks'
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='inventory_stocks'
    )

    # Physical count
    quantity_on_hand = models.IntegerField(default=0)

    # Committed to open sales orders
    quantity_reserved = models.IntegerField(default=0)

    quantity_available = models.IntegerField(default=0, editable=False)

    low_stock_threshold = models.IntegerField(default=10)
    notes = models.TextField(blank=True)

    class Meta:
        verbose_name = "Inventory Stock"
        indexes = [
            models.Index(fields=['warehouse', 'product'], name='inventory_wh_product_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'warehouse'],
                name='inventory_unique_product_warehouse'
            ),
            models.CheckConstraint(
                condition=models.Q(quantity_on_hand__gte=0),
                name='inventory_on_hand_non_negative'
            ),
            models.CheckConstraint(
                condition=models.Q(quantity_reserved__gte=0),
                name='inventory_reserved_non_negative'
            ),
            models.CheckConstraint(
                condition=models.Q(quantity_available__gte=0),
                name='inventory_available_non_negative'
            ),
            models.CheckConstraint(
                condition=models.Q(
                    quantity_available=models.F('quantity_on_hand') - models.F('quantity_reserved')
                ),
                name='inventory_available_derived'
            ),
        ]

    def __str__(self):
        return f"{self.warehouse.code} | {self.product.sku_code} | Avail: {self.quantity_available}"

    def recompute_available(self):
        self.quantity_available = self.quantity_on_hand - self.quantity_reserved
        return self.quantity_available

    def save(self, *args, **kwargs):
        self.recompute_available()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            fields = set(update_fields)
            if fields & set(self.OPERAND_FIELDS):
                fields.add("quantity_available")
            fields.add("updated_at")
            kwargs["update_fields"] = fields
        super().save(*args, **kwargs)

    @property
    def is_low_stock(self):
        return self.quantity_available <= self.low_stock_threshold

    # --------------------------------------------------
    # Quantity primitives. Callers hold the row lock and
    # run inside transaction.atomic (see InventoryService).
    # --------------------------------------------------

    def reserve(self, qty):
        """
        All-or-nothing: reserves exactly qty or raises.
        """
        require_positive_quantity(qty)
        if qty > self.quantity_available:
            raise InsufficientAvailabilityError(
                f"Insufficient stock for {self.product.sku_code}. "
                f"Requested: {qty}, Available: {self.quantity_available}",
                available=self.quantity_available,
                requested=qty,
            )
        self.quantity_reserved += qty
        self.save(update_fields=["quantity_reserved"])
        return qty

    def release(self, qty):
        """
        Returns the quantity actually released (never below zero reserved).
        """
        require_positive_quantity(qty)
        released = min(qty, self.quantity_reserved)
        self.quantity_reserved -= released
        self.save(update_fields=["quantity_reserved"])
        return released

    def set_on_hand(self, qty):
        if qty < 0:
            raise NegativeQuantityError(
                f"On-hand quantity cannot be negative (got {qty})."
            )
        if qty - self.quantity_reserved < 0:
            raise NegativeQuantityError(
                f"On-hand {qty} is below reserved {self.quantity_reserved}; "
                f"release reservations first."
            )
        self.quantity_on_hand = qty
        self.save(update_fields=["quantity_on_hand"])
        return self.quantity_on_hand


class InventoryLedgerEntry(AppendOnlyModel):
    """
    Immutable log of every primitive write to an InventoryStock.
    """
    class EntryType(models.TextChoices):
        CREATE = "create", "Record Created"
        INCREASE = "increase", "Stock Increase"
        DECREASE = "decrease", "Stock Decrease"
        SET_ON_HAND = "set_on_hand", "On-hand Overwrite"
        RESERVE = "reserve", "Reservation"
        RELEASE = "release", "Release"
        FULFILL = "fulfill", "Fulfillment"

    inventory = models.ForeignKey(
        InventoryStock,
        on_delete=models.PROTECT,
        related_name='ledger_entries'
    )
    entry_type = models.CharField(max_length=20, choices=EntryType.choices)

    quantity_change = models.IntegerField(default=0, help_text="On-hand delta (+/-)")
    reserved_change = models.IntegerField(default=0, help_text="Reserved delta (+/-)")

    on_hand_after = models.IntegerField()
    reserved_after = models.IntegerField()
    available_after = models.IntegerField()

    # Traceability
    reference_type = models.CharField(max_length=50, blank=True)
    reference = models.CharField(max_length=100, blank=True, db_index=True)
    notes = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='+'
    )

    class Meta:
        ordering = ['-created_at']
        verbose_name_plural = "Inventory ledger entries"
