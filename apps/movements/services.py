import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.inventory.services import InventoryService
from apps.utils.exceptions import (
    InsufficientInventoryError,
    InvalidChoiceError,
    InvalidQuantityError,
    InvalidStateError,
    NegativeInventoryError,
    NotFoundError,
)
from apps.utils.resilience import logged_operation
from apps.utils.utils import daily_sequence_reference, now, user_or_none

from .models import (
    AUTO_APPROVABLE_TYPES,
    INBOUND_TYPES,
    MovementStatus,
    MovementType,
    StockMovement,
)

logger = logging.getLogger(__name__)


class MovementService:
    """
    Approval-gated stock changes. Inventory is only touched on approval.
    """

    @staticmethod
    def _lock_movement(movement_id) -> StockMovement:
        try:
            return StockMovement.objects.select_for_update().get(id=movement_id)
        except StockMovement.DoesNotExist:
            raise NotFoundError(f"Stock movement {movement_id} not found.")

    @staticmethod
    def _validate_quantity(movement_type, quantity_moved):
        if isinstance(quantity_moved, bool) or not isinstance(quantity_moved, int):
            raise InvalidQuantityError(f"Quantity must be an integer, got {quantity_moved!r}.")
        if quantity_moved == 0:
            raise InvalidQuantityError("Movement quantity cannot be zero.")
        inbound = movement_type in INBOUND_TYPES
        if inbound and quantity_moved < 0:
            raise InvalidQuantityError(f"{movement_type} movements must have a positive quantity.")
        if not inbound and quantity_moved > 0:
            raise InvalidQuantityError(f"{movement_type} movements must have a negative quantity.")

    @staticmethod
    def _to_decimal(value) -> Decimal:
        try:
            number = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise InvalidQuantityError(f"Unit cost must be a number, got {value!r}.")
        if not number.is_finite():
            raise InvalidQuantityError(f"Unit cost must be a finite number, got {value!r}.")
        return number

    # ==========================
    # LIFECYCLE
    # ==========================

    @staticmethod
    @logged_operation("movement.create")
    @transaction.atomic
    def create_movement(
        product_id,
        warehouse_id,
        movement_type: str,
        quantity_moved: int,
        actor=None,
        unit_cost=None,
        reason: str = "",
        notes: str = "",
        metadata: dict = None,
        related_document_type: str = "",
        related_document_id: str = "",
    ) -> StockMovement:
        """
        Records a pending movement. Small adjustment-type movements
        (|total_value| below STOCK_MOVEMENT_AUTO_APPROVE_LIMIT) are approved
        and applied in the same transaction, attributed to the creator.
        """
        if movement_type not in MovementType.values:
            raise InvalidChoiceError(f"Unknown movement type '{movement_type}'.")
        MovementService._validate_quantity(movement_type, quantity_moved)

        stock = InventoryService.lock_inventory_for(product_id, warehouse_id)

        quantity_before = stock.quantity_available
        quantity_after = quantity_before + quantity_moved
        if quantity_after < 0:
            raise InsufficientInventoryError(
                f"Insufficient inventory for this movement. Available: {quantity_before}, "
                f"Requested: {-quantity_moved}",
                available=quantity_before,
                requested=-quantity_moved,
            )

        if unit_cost is None:
            unit_cost = stock.product.cost_price or 0
        unit_cost = MovementService._to_decimal(unit_cost)
        if unit_cost < 0:
            raise InvalidQuantityError("Unit cost cannot be negative.")
        total_value = Decimal(quantity_moved) * unit_cost

        movement = StockMovement.objects.create(
            reference_number=daily_sequence_reference(StockMovement, "SM"),
            product_id=product_id,
            warehouse_id=warehouse_id,
            inventory=stock,
            movement_type=movement_type,
            quantity_moved=quantity_moved,
            quantity_before=quantity_before,
            quantity_after=quantity_after,
            unit_cost=unit_cost,
            total_value=total_value,
            reason=reason,
            notes=notes,
            metadata=metadata or {},
            related_document_type=related_document_type,
            related_document_id=str(related_document_id or ""),
            status=MovementStatus.PENDING,
            created_by=user_or_none(actor),
        )
        logger.info(
            f"Stock movement created {movement.reference_number}",
            extra={
                "movement_id": str(movement.id),
                "reference_number": movement.reference_number,
                "product_id": str(product_id),
                "warehouse_id": str(warehouse_id),
            },
        )

        if (
            movement_type in AUTO_APPROVABLE_TYPES
            and abs(total_value) < settings.STOCK_MOVEMENT_AUTO_APPROVE_LIMIT
        ):
            movement = MovementService.approve_movement(movement.id, actor)

        return movement

    @staticmethod
    @logged_operation("movement.approve")
    @transaction.atomic
    def approve_movement(movement_id, approver=None) -> StockMovement:
        movement = MovementService._lock_movement(movement_id)
        if not movement.can_be_approved:
            raise InvalidStateError(
                f"Movement {movement.reference_number} cannot be approved.",
                current_state=movement.status,
            )

        movement.status = MovementStatus.APPROVED
        movement.approved_by = user_or_none(approver)
        movement.approved_at = now()
        movement.save(update_fields=["status", "approved_by", "approved_at", "updated_at"])

        MovementService._apply_to_inventory(movement, approver)

        movement.status = MovementStatus.APPLIED
        movement.applied_at = now()
        movement.save(update_fields=["status", "applied_at", "updated_at"])

        logger.info(
            f"Stock movement approved and applied {movement.reference_number}",
            extra={
                "movement_id": str(movement.id),
                "reference_number": movement.reference_number,
                "actor_id": getattr(approver, "pk", None),
            },
        )
        return movement

    @staticmethod
    @logged_operation("movement.reject")
    @transaction.atomic
    def reject_movement(movement_id, reason: str = "", approver=None) -> StockMovement:
        movement = MovementService._lock_movement(movement_id)
        if not movement.can_be_rejected:
            raise InvalidStateError(
                f"Movement {movement.reference_number} cannot be rejected.",
                current_state=movement.status,
            )

        rejection = f"Rejected: {reason}".rstrip()
        movement.notes = f"{movement.notes}\n\n{rejection}" if movement.notes else rejection
        movement.status = MovementStatus.REJECTED
        movement.approved_by = user_or_none(approver)
        movement.approved_at = now()
        movement.save(update_fields=["status", "notes", "approved_by", "approved_at", "updated_at"])

        logger.info(
            f"Stock movement rejected {movement.reference_number}",
            extra={"movement_id": str(movement.id), "reference_number": movement.reference_number},
        )
        return movement

    @staticmethod
    def _apply_to_inventory(movement, actor):
        """
        Applies quantity_moved to on-hand against the current state of the
        record, not the snapshot taken at creation.
        """
        stock = InventoryService.lock_inventory(movement.inventory_id)
        if (
            stock.quantity_on_hand + movement.quantity_moved < 0
            or stock.quantity_available + movement.quantity_moved < 0
        ):
            raise NegativeInventoryError(
                f"Movement {movement.reference_number} would result in negative inventory "
                f"(on hand {stock.quantity_on_hand}, available {stock.quantity_available}, "
                f"change {movement.quantity_moved})."
            )

        primitive = InventoryService.increase_stock if movement.quantity_moved > 0 else InventoryService.decrease_stock
        primitive(
            stock.warehouse_id,
            stock.product_id,
            abs(movement.quantity_moved),
            reference_type="stock_movement",
            reference=movement.reference_number,
            notes=movement.get_movement_type_display(),
            actor=actor,
        )

    # ==========================
    # QUERIES
    # ==========================

    @staticmethod
    def get_movement(movement_id) -> StockMovement:
        try:
            return StockMovement.objects.select_related('product', 'warehouse').get(id=movement_id)
        except StockMovement.DoesNotExist:
            raise NotFoundError(f"Stock movement {movement_id} not found.")

    @staticmethod
    def pending_movements():
        return StockMovement.objects.filter(status=MovementStatus.PENDING).select_related('product', 'warehouse')

    @staticmethod
    def movements_for_product(product_id):
        return StockMovement.objects.filter(product_id=product_id).select_related('warehouse')

    @staticmethod
    def movements_for_warehouse(warehouse_id):
        return StockMovement.objects.filter(warehouse_id=warehouse_id).select_related('product')

    @staticmethod
    def recent_movements(limit=10):
        return StockMovement.objects.select_related('product', 'warehouse')[:limit]

    @staticmethod
    def movement_analytics():
        current = timezone.localtime(now())
        today = current.replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = today - timedelta(days=today.weekday())
        month_start = today.replace(day=1)

        qs = StockMovement.objects.all()
        return {
            "pending_approval": qs.filter(status=MovementStatus.PENDING).count(),
            "today_movements": qs.filter(created_at__gte=today).count(),
            "week_movements": qs.filter(created_at__gte=week_start).count(),
            "month_movements": qs.filter(created_at__gte=month_start).count(),
        }
