import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Q, Sum
from django.utils import timezone

from apps.inventory.services import InventoryService
from apps.inventory.models import require_positive_quantity
from apps.warehouse.models import Warehouse
from apps.utils.exceptions import (
    BusinessLogicException,
    DuplicateRequestError,
    InsufficientAvailabilityError,
    InvalidStateError,
    LedgerValidationError,
    NotFoundError,
    SameWarehouseError,
)
from apps.utils.resilience import logged_operation
from apps.utils.utils import daily_sequence_reference, now, user_or_none

from .models import StockTransfer, StockTransferEvent, TransferStatus, OPEN_STATUSES

logger = logging.getLogger(__name__)


class TransferService:
    """
    Cross-warehouse transfer orchestration.
    Source stock moves on ship, destination stock on complete.
    """

    # ==========================
    # INTERNAL
    # ==========================

    @staticmethod
    def _lock_transfer(transfer_id) -> StockTransfer:
        try:
            return StockTransfer.objects.select_for_update().select_related('product').get(id=transfer_id)
        except StockTransfer.DoesNotExist:
            raise NotFoundError(f"Stock transfer {transfer_id} not found.")

    @staticmethod
    def _ensure_available(warehouse_id, product_id, quantity):
        """
        Locks the source record and checks it can cover quantity.
        """
        try:
            stock = InventoryService.lock_inventory_for(product_id, warehouse_id)
        except NotFoundError:
            raise InsufficientAvailabilityError(
                f"Insufficient inventory. Available: 0, Requested: {quantity}",
                available=0,
                requested=quantity,
            )
        if stock.quantity_available < quantity:
            raise InsufficientAvailabilityError(
                f"Insufficient inventory. Available: {stock.quantity_available}, Requested: {quantity}",
                available=stock.quantity_available,
                requested=quantity,
            )
        return stock

    @staticmethod
    def _transition(transfer, activity, actor, notes="", **fields):
        from_status = transfer.transfer_status
        for name, value in fields.items():
            setattr(transfer, name, value)
        transfer.save(update_fields=list(fields) + ["updated_at"])
        return TransferService._record_event(transfer, activity, actor, from_status, notes)

    @staticmethod
    def _record_event(transfer, activity, actor, from_status="", notes=""):
        event = StockTransferEvent.objects.create(
            transfer=transfer,
            reference_number=transfer.reference_number,
            activity=activity,
            actor=user_or_none(actor),
            from_status=from_status,
            to_status=transfer.transfer_status,
            notes=notes,
        )
        logger.info(
            f"Stock Transfer {activity}",
            extra={
                "transfer_id": str(transfer.id),
                "reference_number": transfer.reference_number,
                "activity": activity,
                "actor_id": getattr(user_or_none(actor), "pk", None),
            },
        )
        return event

    # ==========================
    # LIFECYCLE
    # ==========================

    @staticmethod
    @logged_operation("transfer.initiate")
    @transaction.atomic
    def initiate_transfer(
        from_warehouse_id,
        to_warehouse_id,
        product_id,
        quantity: int,
        actor=None,
        notes: str = "",
    ) -> StockTransfer:
        if str(from_warehouse_id) == str(to_warehouse_id):
            raise SameWarehouseError("Source and destination warehouses must be different.")
        require_positive_quantity(quantity)
        if not Warehouse.objects.filter(id=to_warehouse_id).exists():
            raise NotFoundError(f"Warehouse {to_warehouse_id} not found.")

        TransferService._ensure_available(from_warehouse_id, product_id, quantity)

        duplicate = StockTransfer.objects.filter(
            from_warehouse_id=from_warehouse_id,
            to_warehouse_id=to_warehouse_id,
            product_id=product_id,
            transfer_status__in=[TransferStatus.PENDING, TransferStatus.APPROVED],
        ).first()
        if duplicate:
            raise DuplicateRequestError(
                f"A similar transfer request already exists ({duplicate.reference_number})."
            )

        transfer = StockTransfer.objects.create(
            reference_number=daily_sequence_reference(StockTransfer, "ST"),
            from_warehouse_id=from_warehouse_id,
            to_warehouse_id=to_warehouse_id,
            product_id=product_id,
            quantity_transferred=quantity,
            transfer_status=TransferStatus.PENDING,
            notes=notes,
            initiated_by=user_or_none(actor),
            initiated_at=now(),
        )
        TransferService._record_event(transfer, StockTransferEvent.Activity.INITIATED, actor, notes=notes)
        return transfer

    @staticmethod
    @logged_operation("transfer.approve")
    @transaction.atomic
    def approve_transfer(transfer_id, approver=None) -> StockTransfer:
        transfer = TransferService._lock_transfer(transfer_id)
        if not transfer.can_be_approved:
            raise InvalidStateError(
                f"Transfer {transfer.reference_number} cannot be approved.",
                current_state=transfer.transfer_status,
            )
        TransferService._ensure_available(
            transfer.from_warehouse_id, transfer.product_id, transfer.quantity_transferred
        )
        TransferService._transition(
            transfer,
            StockTransferEvent.Activity.APPROVED,
            approver,
            transfer_status=TransferStatus.APPROVED,
            approved_by=user_or_none(approver),
            approved_at=now(),
        )
        return transfer

    @staticmethod
    @logged_operation("transfer.ship")
    @transaction.atomic
    def mark_in_transit(transfer_id, actor=None) -> StockTransfer:
        transfer = TransferService._lock_transfer(transfer_id)
        if not transfer.can_be_shipped:
            raise InvalidStateError(
                f"Transfer {transfer.reference_number} cannot be marked as in transit.",
                current_state=transfer.transfer_status,
            )
        InventoryService.decrease_stock(
            transfer.from_warehouse_id,
            transfer.product_id,
            transfer.quantity_transferred,
            reference_type="stock_transfer",
            reference=transfer.reference_number,
            notes="shipped",
            actor=actor,
        )
        TransferService._transition(
            transfer,
            StockTransferEvent.Activity.IN_TRANSIT,
            actor,
            transfer_status=TransferStatus.IN_TRANSIT,
            shipped_by=user_or_none(actor),
            shipped_at=now(),
        )
        return transfer

    @staticmethod
    @logged_operation("transfer.complete")
    @transaction.atomic
    def complete_transfer(transfer_id, completer=None) -> StockTransfer:
        transfer = TransferService._lock_transfer(transfer_id)
        if not transfer.can_be_completed:
            raise InvalidStateError(
                f"Transfer {transfer.reference_number} cannot be completed.",
                current_state=transfer.transfer_status,
            )
        InventoryService.increase_stock(
            transfer.to_warehouse_id,
            transfer.product_id,
            transfer.quantity_transferred,
            reference_type="stock_transfer",
            reference=transfer.reference_number,
            notes="received",
            actor=completer,
        )
        TransferService._transition(
            transfer,
            StockTransferEvent.Activity.COMPLETED,
            completer,
            transfer_status=TransferStatus.COMPLETED,
            completed_by=user_or_none(completer),
            completed_at=now(),
        )
        return transfer

    @staticmethod
    @logged_operation("transfer.cancel")
    @transaction.atomic
    def cancel_transfer(transfer_id, reason: str, actor=None) -> StockTransfer:
        """
        Cancelling an in-transit transfer puts the shipped quantity back
        into the source warehouse.
        """
        reason = (reason or "").strip()
        if not reason:
            raise LedgerValidationError("A cancellation reason is required.")

        transfer = TransferService._lock_transfer(transfer_id)
        if not transfer.can_be_cancelled:
            raise InvalidStateError(
                f"Transfer {transfer.reference_number} cannot be cancelled.",
                current_state=transfer.transfer_status,
            )

        if transfer.transfer_status == TransferStatus.IN_TRANSIT:
            InventoryService.increase_stock(
                transfer.from_warehouse_id,
                transfer.product_id,
                transfer.quantity_transferred,
                reference_type="stock_transfer",
                reference=transfer.reference_number,
                notes=f"cancelled in transit: {reason}",
                actor=actor,
            )

        TransferService._transition(
            transfer,
            StockTransferEvent.Activity.CANCELLED,
            actor,
            notes=reason,
            transfer_status=TransferStatus.CANCELLED,
            cancellation_reason=reason,
            cancelled_by=user_or_none(actor),
            cancelled_at=now(),
        )
        return transfer

    @staticmethod
    @logged_operation("transfer.update")
    @transaction.atomic
    def update_transfer(transfer_id, actor=None, quantity: int = None, notes: str = None) -> StockTransfer:
        """
        Quantity may only change while pending; notes while the transfer is open.
        """
        transfer = TransferService._lock_transfer(transfer_id)
        if not transfer.can_be_cancelled:
            raise InvalidStateError(
                f"Transfer {transfer.reference_number} can no longer be updated.",
                current_state=transfer.transfer_status,
            )

        changes = []
        fields = []
        if quantity is not None and quantity != transfer.quantity_transferred:
            if not transfer.can_be_edited:
                raise InvalidStateError(
                    f"Quantity of transfer {transfer.reference_number} can only change while pending.",
                    current_state=transfer.transfer_status,
                )
            require_positive_quantity(quantity)
            TransferService._ensure_available(transfer.from_warehouse_id, transfer.product_id, quantity)
            changes.append(f"quantity {transfer.quantity_transferred} -> {quantity}")
            transfer.quantity_transferred = quantity
            fields.append("quantity_transferred")
        if notes is not None and notes != transfer.notes:
            changes.append("notes updated")
            transfer.notes = notes
            fields.append("notes")

        if fields:
            transfer.save(update_fields=fields + ["updated_at"])
            TransferService._record_event(
                transfer,
                StockTransferEvent.Activity.UPDATED,
                actor,
                from_status=transfer.transfer_status,
                notes="; ".join(changes),
            )
        return transfer

    # ==========================
    # BULK
    # ==========================

    @staticmethod
    def _bulk(transfer_ids, operation, verb):
        done, failed, errors = 0, 0, []
        for transfer_id in transfer_ids:
            try:
                # Each transfer commits or rolls back on its own
                with transaction.atomic():
                    operation(transfer_id)
                done += 1
            except BusinessLogicException as e:
                failed += 1
                errors.append(f"Failed to {verb} transfer {transfer_id}: {e.message}")
        return done, failed, errors

    @staticmethod
    def bulk_approve_transfers(transfer_ids, approver=None) -> dict:
        approved, failed, errors = TransferService._bulk(
            transfer_ids, lambda tid: TransferService.approve_transfer(tid, approver), "approve"
        )
        return {"approved": approved, "failed": failed, "errors": errors}

    @staticmethod
    def bulk_cancel_transfers(transfer_ids, reason: str, actor=None) -> dict:
        cancelled, failed, errors = TransferService._bulk(
            transfer_ids, lambda tid: TransferService.cancel_transfer(tid, reason, actor), "cancel"
        )
        return {"cancelled": cancelled, "failed": failed, "errors": errors}

    # ==========================
    # QUERIES
    # ==========================

    @staticmethod
    def get_transfer(transfer_id) -> StockTransfer:
        try:
            return StockTransfer.objects.select_related(
                'product', 'from_warehouse', 'to_warehouse'
            ).get(id=transfer_id)
        except StockTransfer.DoesNotExist:
            raise NotFoundError(f"Stock transfer {transfer_id} not found.")

    @staticmethod
    def pending_approvals():
        return (
            StockTransfer.objects
            .filter(transfer_status=TransferStatus.PENDING)
            .select_related('product', 'from_warehouse', 'to_warehouse')
            .order_by('initiated_at')
        )

    @staticmethod
    def transfer_history(product_id, warehouse_id):
        return (
            StockTransfer.objects
            .filter(product_id=product_id)
            .filter(Q(from_warehouse_id=warehouse_id) | Q(to_warehouse_id=warehouse_id))
            .select_related('from_warehouse', 'to_warehouse')
        )

    @staticmethod
    def overdue_transfers(days: int = None):
        if days is None:
            days = settings.STOCK_TRANSFER_OVERDUE_DAYS
        cutoff = now() - timedelta(days=days)
        return (
            StockTransfer.objects
            .filter(transfer_status__in=OPEN_STATUSES, initiated_at__lt=cutoff)
            .select_related('product', 'from_warehouse', 'to_warehouse')
            .order_by('initiated_at')
        )

    @staticmethod
    def transfer_analytics(warehouse_id=None) -> dict:
        qs = StockTransfer.objects.all()
        if warehouse_id:
            qs = qs.filter(Q(from_warehouse_id=warehouse_id) | Q(to_warehouse_id=warehouse_id))

        month_start = timezone.localtime(now()).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        completed = qs.filter(transfer_status=TransferStatus.COMPLETED)
        return {
            "total_transfers": qs.count(),
            "pending_transfers": qs.filter(transfer_status=TransferStatus.PENDING).count(),
            "in_transit_transfers": qs.filter(transfer_status=TransferStatus.IN_TRANSIT).count(),
            "completed_transfers": completed.count(),
            "cancelled_transfers": qs.filter(transfer_status=TransferStatus.CANCELLED).count(),
            "this_month_transfers": qs.filter(initiated_at__gte=month_start).count(),
            "total_quantity_transferred": completed.aggregate(total=Sum('quantity_transferred'))['total'] or 0,
        }
