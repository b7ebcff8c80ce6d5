# apps/inventory/apps.py
from django.apps import AppConfig


class InventoryConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.inventory'
    verbose_name = 'Stock Ledger'

    def ready(self):
        # Fulfillment hook receivers must be connected before any order event fires.
        import apps.inventory.receivers  # noqa: F401
