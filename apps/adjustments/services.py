import logging
from django.db import transaction
from django.db.models import Count, Sum

from apps.inventory.services import InventoryService
from apps.utils.exceptions import InvalidChoiceError, InvalidQuantityError
from apps.utils.resilience import logged_operation
from apps.utils.utils import now, unique_random_reference, user_or_none

from .models import StockAdjustment

logger = logging.getLogger(__name__)


class AdjustmentService:

    @staticmethod
    @logged_operation("adjustment.create")
    @transaction.atomic
    def create_adjustment(
        inventory_id,
        adjustment_type: str,
        quantity_adjusted: int,
        reason: str,
        notes: str = "",
        actor=None,
    ) -> StockAdjustment:
        """
        Applies a correction to on-hand and records it.

        The magnitude is taken as abs(quantity_adjusted). A decrease larger
        than on-hand clamps at zero; quantity_after records the clamped value.
        """
        if adjustment_type not in StockAdjustment.AdjustmentType.values:
            raise InvalidChoiceError(f"Unknown adjustment type '{adjustment_type}'.")
        if reason not in StockAdjustment.Reason.values:
            raise InvalidChoiceError(f"Unknown adjustment reason '{reason}'.")
        if isinstance(quantity_adjusted, bool) or not isinstance(quantity_adjusted, int):
            raise InvalidQuantityError(f"Quantity must be an integer, got {quantity_adjusted!r}.")

        magnitude = abs(quantity_adjusted)
        if magnitude == 0:
            raise InvalidQuantityError("Adjustment quantity cannot be zero.")

        stock = InventoryService.lock_inventory(inventory_id)
        before = stock.quantity_on_hand
        if adjustment_type == StockAdjustment.AdjustmentType.INCREASE:
            after = before + magnitude
        else:
            after = max(0, before - magnitude)

        adjustment = StockAdjustment.objects.create(
            inventory=stock,
            adjustment_type=adjustment_type,
            quantity_adjusted=magnitude,
            quantity_before=before,
            quantity_after=after,
            reason=reason,
            notes=notes,
            reference_number=unique_random_reference(StockAdjustment, "ADJ"),
            adjusted_by=user_or_none(actor),
            adjusted_at=now(),
        )

        # Raises NegativeQuantityError when after < reserved; the audit row rolls back with it.
        InventoryService.set_on_hand(
            stock.id,
            after,
            reference_type="adjustment",
            reference=adjustment.reference_number,
            notes=f"{reason}: {notes}" if notes else reason,
            actor=actor,
            stock=stock,
        )

        logger.info(
            f"Adjustment {adjustment.reference_number}: {before} -> {after}",
            extra={"reference_number": adjustment.reference_number, "inventory_id": str(stock.id)},
        )
        return adjustment

    @staticmethod
    def adjustment_reasons():
        return dict(StockAdjustment.Reason.choices)

    @staticmethod
    def adjustments_for_inventory(inventory_id):
        return StockAdjustment.objects.filter(inventory_id=inventory_id).select_related('adjusted_by')

    @staticmethod
    def adjustments_by_user(user_id):
        return StockAdjustment.objects.filter(adjusted_by_id=user_id).select_related('inventory__product')

    @staticmethod
    def recent_adjustments(limit=10):
        return StockAdjustment.objects.select_related('inventory__product', 'inventory__warehouse')[:limit]

    @staticmethod
    def adjustment_summary():
        totals = {
            row['adjustment_type']: {"count": row['count'], "total_quantity": row['total_quantity'] or 0}
            for row in (
                StockAdjustment.objects
                .order_by()
                .values('adjustment_type')
                .annotate(count=Count('id'), total_quantity=Sum('quantity_adjusted'))
            )
        }
        empty = {"count": 0, "total_quantity": 0}
        return {
            "total_adjustments": sum(t["count"] for t in totals.values()),
            "increases": totals.get(StockAdjustment.AdjustmentType.INCREASE, empty),
            "decreases": totals.get(StockAdjustment.AdjustmentType.DECREASE, empty),
        }
