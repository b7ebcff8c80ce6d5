import logging
from celery import shared_task
from apps.warehouse.models import Warehouse
from .audit import audit_warehouse

logger = logging.getLogger(__name__)


@shared_task
def audit_inventory_ledger():
    """
    MASTER TASK: spawns one audit per active warehouse.
    """
    warehouse_ids = Warehouse.objects.filter(is_active=True).values_list('id', flat=True)
    count = 0
    for w_id in warehouse_ids:
        audit_warehouse_ledger.delay(w_id)
        count += 1
    return f"Triggered ledger audit for {count} warehouses"


@shared_task(time_limit=600)
def audit_warehouse_ledger(warehouse_id):
    logger.info(f"Auditing ledger for warehouse {warehouse_id}...")
    mismatches = audit_warehouse(warehouse_id)
    if mismatches:
        logger.warning(
            f"WH {warehouse_id}: {len(mismatches)} ledger mismatches",
            extra={"warehouse_id": str(warehouse_id)},
        )
    return mismatches
