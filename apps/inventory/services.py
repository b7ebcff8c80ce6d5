import logging
from decimal import Decimal
from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Count, DecimalField, ExpressionWrapper, F, Q, Sum
from django.db.models.deletion import ProtectedError

from apps.utils.exceptions import (
    DuplicateKeyError,
    InsufficientAvailabilityError,
    InvalidQuantityError,
    InvalidStateError,
    NegativeQuantityError,
    NotFoundError,
)
from apps.utils.resilience import logged_operation
from apps.utils.utils import user_or_none

from .models import InventoryStock, InventoryLedgerEntry, require_positive_quantity

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Core Logic for the stock ledger.
    ALL quantity changes must pass through here.
    """

    # ==========================
    # LOOKUPS
    # ==========================

    @staticmethod
    def get_inventory(product_id, warehouse_id) -> InventoryStock:
        try:
            return InventoryStock.objects.select_related('product', 'warehouse').get(
                product_id=product_id, warehouse_id=warehouse_id
            )
        except InventoryStock.DoesNotExist:
            raise NotFoundError(
                f"Inventory not found for product {product_id} in warehouse {warehouse_id}."
            )

    @staticmethod
    def get_inventory_by_id(inventory_id) -> InventoryStock:
        try:
            return InventoryStock.objects.select_related('product', 'warehouse').get(id=inventory_id)
        except InventoryStock.DoesNotExist:
            raise NotFoundError(f"Inventory {inventory_id} not found.")

    @staticmethod
    def lock_inventory(inventory_id) -> InventoryStock:
        """
        Row lock; must be called inside transaction.atomic.
        """
        try:
            return (
                InventoryStock.objects
                .select_for_update()
                .select_related('product', 'warehouse')
                .get(id=inventory_id)
            )
        except InventoryStock.DoesNotExist:
            raise NotFoundError(f"Inventory {inventory_id} not found.")

    @staticmethod
    def lock_inventory_for(product_id, warehouse_id) -> InventoryStock:
        try:
            return (
                InventoryStock.objects
                .select_for_update()
                .select_related('product', 'warehouse')
                .get(product_id=product_id, warehouse_id=warehouse_id)
            )
        except InventoryStock.DoesNotExist:
            raise NotFoundError(
                f"Inventory not found for product {product_id} in warehouse {warehouse_id}."
            )

    @staticmethod
    def available_quantity(product_id, warehouse_id) -> int:
        """
        Unlocked read; 0 when the pair has no record yet.
        """
        value = (
            InventoryStock.objects
            .filter(product_id=product_id, warehouse_id=warehouse_id)
            .values_list('quantity_available', flat=True)
            .first()
        )
        return value or 0

    # ==========================
    # RECORD LIFECYCLE
    # ==========================

    @staticmethod
    @logged_operation("inventory.create")
    @transaction.atomic
    def create_inventory(
        product_id,
        warehouse_id,
        quantity_on_hand: int = 0,
        quantity_reserved: int = 0,
        low_stock_threshold: int = None,
        actor=None,
        notes: str = "",
    ) -> InventoryStock:
        if quantity_on_hand < 0 or quantity_reserved < 0:
            raise NegativeQuantityError("Initial quantities cannot be negative.")
        if quantity_reserved > quantity_on_hand:
            raise NegativeQuantityError(
                f"Reserved ({quantity_reserved}) cannot exceed on-hand ({quantity_on_hand})."
            )

        if InventoryStock.objects.filter(product_id=product_id, warehouse_id=warehouse_id).exists():
            raise DuplicateKeyError(
                "Inventory record already exists for this product in this warehouse."
            )

        if low_stock_threshold is None:
            low_stock_threshold = settings.DEFAULT_LOW_STOCK_THRESHOLD

        try:
            with transaction.atomic():
                stock = InventoryStock.objects.create(
                    product_id=product_id,
                    warehouse_id=warehouse_id,
                    quantity_on_hand=quantity_on_hand,
                    quantity_reserved=quantity_reserved,
                    low_stock_threshold=low_stock_threshold,
                    notes=notes,
                )
        except IntegrityError:
            raise DuplicateKeyError(
                "Inventory record already exists for this product in this warehouse."
            )

        InventoryService._log(
            stock,
            InventoryLedgerEntry.EntryType.CREATE,
            quantity_change=quantity_on_hand,
            reserved_change=quantity_reserved,
            reference_type="inventory",
            notes="initial stock",
            actor=actor,
        )
        logger.info(
            f"Inventory created {stock.id}",
            extra={"inventory_id": str(stock.id), "product_id": str(product_id), "warehouse_id": str(warehouse_id)},
        )
        return stock

    @staticmethod
    @logged_operation("inventory.delete")
    @transaction.atomic
    def delete_inventory(inventory_id):
        """
        Only records without any recorded history can be removed; ledger
        entries, adjustments and movements keep their inventory row alive.
        """
        stock = InventoryService.lock_inventory(inventory_id)
        if stock.quantity_reserved > 0:
            raise InvalidStateError(
                f"Inventory has {stock.quantity_reserved} reserved units that must be released before deletion.",
                current_state={
                    "quantity_reserved": stock.quantity_reserved,
                    "quantity_available": stock.quantity_available,
                },
            )

        history = {
            "ledger_entries": stock.ledger_entries.count(),
            "adjustments": stock.adjustments.count(),
            "movements": stock.movements.count(),
        }
        if any(history.values()):
            raise InvalidStateError(
                "Inventory with recorded history cannot be deleted; zero it with an adjustment instead.",
                current_state=history,
            )

        try:
            stock.delete()
        except ProtectedError as exc:
            raise InvalidStateError(
                "Inventory is still referenced by audit records.",
                current_state={"protected_objects": len(exc.protected_objects)},
            )
        logger.info(f"Inventory deleted {inventory_id}", extra={"inventory_id": str(inventory_id)})

    @staticmethod
    @logged_operation("inventory.update")
    @transaction.atomic
    def update_inventory(inventory_id, low_stock_threshold: int = None, notes: str = None, actor=None) -> InventoryStock:
        """
        Metadata only. Quantities change through the ledger primitives.
        """
        stock = InventoryService.lock_inventory(inventory_id)
        changed = []
        if low_stock_threshold is not None:
            if isinstance(low_stock_threshold, bool) or not isinstance(low_stock_threshold, int) \
                    or low_stock_threshold < 0:
                raise InvalidQuantityError(
                    f"Low stock threshold must be a non-negative integer, got {low_stock_threshold!r}."
                )
            stock.low_stock_threshold = low_stock_threshold
            changed.append("low_stock_threshold")
        if notes is not None:
            stock.notes = notes
            changed.append("notes")

        if changed:
            stock.save(update_fields=changed + ["updated_at"])
            logger.info(
                f"Inventory updated {stock.id}",
                extra={
                    "inventory_id": str(stock.id),
                    "fields": changed,
                    "actor_id": getattr(actor, "pk", None),
                },
            )
        return stock

    # ==========================
    # RESERVATION PRIMITIVES
    # ==========================

    @staticmethod
    @logged_operation("inventory.reserve")
    @transaction.atomic
    def reserve(inventory_id, qty: int, reference: str = "", actor=None) -> InventoryStock:
        stock = InventoryService.lock_inventory(inventory_id)
        stock.reserve(qty)
        InventoryService._log(
            stock,
            InventoryLedgerEntry.EntryType.RESERVE,
            reserved_change=qty,
            reference_type="reservation",
            reference=reference,
            actor=actor,
        )
        return stock

    @staticmethod
    @logged_operation("inventory.release")
    @transaction.atomic
    def release(inventory_id, qty: int, reference: str = "", actor=None) -> InventoryStock:
        stock = InventoryService.lock_inventory(inventory_id)
        released = stock.release(qty)
        InventoryService._log(
            stock,
            InventoryLedgerEntry.EntryType.RELEASE,
            reserved_change=-released,
            reference_type="reservation",
            reference=reference,
            notes="" if released == qty else f"requested {qty}, released {released}",
            actor=actor,
        )
        return stock

    @staticmethod
    @logged_operation("inventory.fulfill")
    @transaction.atomic
    def fulfill(inventory_id, qty: int, reference: str = "", actor=None) -> InventoryStock:
        """
        Hard deduction (goods leave the warehouse against a reservation).
        Decreases BOTH on-hand and reserved by qty.
        """
        require_positive_quantity(qty)
        stock = InventoryService.lock_inventory(inventory_id)
        if stock.quantity_reserved < qty:
            raise InsufficientAvailabilityError(
                f"Cannot fulfill {qty} units of {stock.product.sku_code}: only {stock.quantity_reserved} reserved.",
                available=stock.quantity_reserved,
                requested=qty,
            )
        stock.quantity_reserved -= qty
        stock.quantity_on_hand -= qty
        stock.save(update_fields=["quantity_on_hand", "quantity_reserved"])
        InventoryService._log(
            stock,
            InventoryLedgerEntry.EntryType.FULFILL,
            quantity_change=-qty,
            reserved_change=-qty,
            reference_type="sales_order",
            reference=reference,
            actor=actor,
        )
        return stock

    # ==========================
    # ON-HAND PRIMITIVES
    # ==========================

    @staticmethod
    @transaction.atomic
    def set_on_hand(
        inventory_id,
        qty: int,
        reference_type: str = "",
        reference: str = "",
        notes: str = "",
        actor=None,
        stock: InventoryStock = None,
    ) -> InventoryStock:
        """
        Overwrite on-hand. Pass `stock` when the caller already holds the lock.
        """
        if stock is None:
            stock = InventoryService.lock_inventory(inventory_id)
        before = stock.quantity_on_hand
        stock.set_on_hand(qty)
        InventoryService._log(
            stock,
            InventoryLedgerEntry.EntryType.SET_ON_HAND,
            quantity_change=qty - before,
            reference_type=reference_type,
            reference=reference,
            notes=notes,
            actor=actor,
        )
        return stock

    @staticmethod
    @transaction.atomic
    def increase_stock(
        warehouse_id,
        product_id,
        qty: int,
        reference_type: str = "",
        reference: str = "",
        notes: str = "",
        actor=None,
    ) -> InventoryStock:
        """
        Adds to on-hand, creating the record on first receipt.
        """
        require_positive_quantity(qty)
        stock, created = (
            InventoryStock.objects
            .select_for_update()
            .get_or_create(
                product_id=product_id,
                warehouse_id=warehouse_id,
                defaults={"low_stock_threshold": settings.DEFAULT_LOW_STOCK_THRESHOLD},
            )
        )
        if created:
            InventoryService._log(
                stock,
                InventoryLedgerEntry.EntryType.CREATE,
                reference_type=reference_type,
                reference=reference,
                notes="created on first receipt",
                actor=actor,
            )
        stock.set_on_hand(stock.quantity_on_hand + qty)
        InventoryService._log(
            stock,
            InventoryLedgerEntry.EntryType.INCREASE,
            quantity_change=qty,
            reference_type=reference_type,
            reference=reference,
            notes=notes,
            actor=actor,
        )
        return stock

    @staticmethod
    @transaction.atomic
    def decrease_stock(
        warehouse_id,
        product_id,
        qty: int,
        reference_type: str = "",
        reference: str = "",
        notes: str = "",
        actor=None,
    ) -> InventoryStock:
        require_positive_quantity(qty)
        try:
            stock = InventoryService.lock_inventory_for(product_id, warehouse_id)
        except NotFoundError:
            raise InsufficientAvailabilityError(
                f"No stock of product {product_id} in warehouse {warehouse_id}.",
                available=0,
                requested=qty,
            )
        if stock.quantity_available < qty:
            raise InsufficientAvailabilityError(
                f"Insufficient stock. Available: {stock.quantity_available}, Requested: {qty}",
                available=stock.quantity_available,
                requested=qty,
            )
        stock.set_on_hand(stock.quantity_on_hand - qty)
        InventoryService._log(
            stock,
            InventoryLedgerEntry.EntryType.DECREASE,
            quantity_change=-qty,
            reference_type=reference_type,
            reference=reference,
            notes=notes,
            actor=actor,
        )
        return stock

    # ==========================
    # QUERIES
    # ==========================

    @staticmethod
    def low_stock(warehouse_id=None):
        qs = InventoryStock.objects.select_related('product', 'warehouse').filter(
            quantity_available__lte=F('low_stock_threshold')
        )
        if warehouse_id:
            qs = qs.filter(warehouse_id=warehouse_id)
        return qs.order_by('quantity_available')

    @staticmethod
    def ledger_history(inventory_id):
        return InventoryLedgerEntry.objects.filter(inventory_id=inventory_id).select_related('created_by')

    @staticmethod
    def inventory_analytics(warehouse_id=None) -> dict:
        qs = InventoryStock.objects.all()
        if warehouse_id:
            qs = qs.filter(warehouse_id=warehouse_id)
        stock_value = ExpressionWrapper(
            F('quantity_on_hand') * F('product__cost_price'),
            output_field=DecimalField(max_digits=18, decimal_places=4),
        )
        totals = qs.aggregate(
            total_inventory_value=Sum(stock_value),
            low_stock_items=Count('id', filter=Q(quantity_available__lte=F('low_stock_threshold'))),
            total_products_tracked=Count('product', distinct=True),
            total_warehouses_active=Count('warehouse', distinct=True),
        )
        totals["total_inventory_value"] = totals["total_inventory_value"] or Decimal("0")
        return totals

    # ==========================
    # INTERNAL
    # ==========================

    @staticmethod
    def _log(stock, entry_type, quantity_change=0, reserved_change=0,
             reference_type="", reference="", notes="", actor=None):
        return InventoryLedgerEntry.objects.create(
            inventory=stock,
            entry_type=entry_type,
            quantity_change=quantity_change,
            reserved_change=reserved_change,
            on_hand_after=stock.quantity_on_hand,
            reserved_after=stock.quantity_reserved,
            available_after=stock.quantity_available,
            reference_type=reference_type,
            reference=str(reference or ""),
            notes=notes,
            created_by=user_or_none(actor),
        )
