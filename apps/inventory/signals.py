# apps/inventory/signals.py
from django.dispatch import Signal

# Published by order management; consumed by apps.inventory.receivers.
# Sent with Signal.send(): a ledger error propagates back to the publisher
# and rolls back its transaction.

# A sales order line needs stock held.
# kwargs: inventory_id, quantity, reference, actor
stock_reservation_requested = Signal()

# A sales order line was cancelled or reduced.
# kwargs: inventory_id, quantity, reference, actor
stock_release_requested = Signal()

# Reserved goods physically left the warehouse.
# kwargs: inventory_id, quantity, reference, actor
stock_fulfilled = Signal()

# Purchase order goods were received at a warehouse.
# kwargs: warehouse_id, product_id, quantity, reference, actor
stock_received = Signal()
