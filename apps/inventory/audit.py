import logging
from django.core.paginator import Paginator
from django.db.models import Sum

from .models import InventoryStock

logger = logging.getLogger(__name__)


def audit_stock(stock, ledger_total):
    """
    Returns a list of problem strings for one record; empty when consistent.
    """
    problems = []
    if stock.quantity_available != stock.quantity_on_hand - stock.quantity_reserved:
        problems.append(
            f"available {stock.quantity_available} != on_hand {stock.quantity_on_hand} "
            f"- reserved {stock.quantity_reserved}"
        )
    for field in ("quantity_on_hand", "quantity_reserved", "quantity_available"):
        if getattr(stock, field) < 0:
            problems.append(f"{field} is negative ({getattr(stock, field)})")
    if ledger_total != stock.quantity_on_hand:
        problems.append(f"on_hand {stock.quantity_on_hand} != ledger total {ledger_total}")
    return problems


def audit_warehouse(warehouse_id, page_size=1000):
    """
    Read-only consistency check of every InventoryStock in a warehouse.
    Mismatches are reported, never auto-corrected.
    """
    stocks = (
        InventoryStock.objects
        .filter(warehouse_id=warehouse_id)
        .select_related('product', 'warehouse')
        .annotate(ledger_total=Sum('ledger_entries__quantity_change'))
        .order_by('id')
    )
    mismatches = []
    paginator = Paginator(stocks, page_size)
    for page_num in paginator.page_range:
        for stock in paginator.page(page_num).object_list:
            problems = audit_stock(stock, stock.ledger_total or 0)
            if not problems:
                continue
            logger.warning(
                f"Ledger mismatch {stock.warehouse.code} | {stock.product.sku_code}: {'; '.join(problems)}",
                extra={"inventory_id": str(stock.id), "warehouse_id": str(warehouse_id)},
            )
            mismatches.append({
                "inventory_id": str(stock.id),
                "sku_code": stock.product.sku_code,
                "problems": problems,
            })
    return mismatches
