import logging
from django.dispatch import receiver

from .services import InventoryService
from .signals import (
    stock_reservation_requested,
    stock_release_requested,
    stock_fulfilled,
    stock_received,
)

logger = logging.getLogger(__name__)


@receiver(stock_reservation_requested)
def handle_reservation_requested(sender, inventory_id, quantity, reference="", actor=None, **kwargs):
    logger.info(f"Reserving {quantity} on {inventory_id} for {reference}")
    return InventoryService.reserve(inventory_id, quantity, reference=reference, actor=actor)


@receiver(stock_release_requested)
def handle_release_requested(sender, inventory_id, quantity, reference="", actor=None, **kwargs):
    logger.info(f"Releasing {quantity} on {inventory_id} for {reference}")
    return InventoryService.release(inventory_id, quantity, reference=reference, actor=actor)


@receiver(stock_fulfilled)
def handle_stock_fulfilled(sender, inventory_id, quantity, reference="", actor=None, **kwargs):
    logger.info(f"Fulfilling {quantity} from {inventory_id} for {reference}")
    return InventoryService.fulfill(inventory_id, quantity, reference=reference, actor=actor)


@receiver(stock_received)
def handle_stock_received(sender, warehouse_id, product_id, quantity, reference="", actor=None, **kwargs):
    logger.info(f"Receiving {quantity} of {product_id} into warehouse {warehouse_id} for {reference}")
    return InventoryService.increase_stock(
        warehouse_id,
        product_id,
        quantity,
        reference_type="purchase_order",
        reference=reference,
        notes="purchase order receipt",
        actor=actor,
    )
