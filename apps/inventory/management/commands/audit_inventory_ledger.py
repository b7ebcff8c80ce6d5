from django.core.management.base import BaseCommand, CommandError
from apps.warehouse.models import Warehouse
from apps.inventory.audit import audit_warehouse


class Command(BaseCommand):
    help = "Checks every InventoryStock against its availability invariant and ledger history"

    def add_arguments(self, parser):
        parser.add_argument('--warehouse', help="Warehouse code to audit (default: all active)")

    def handle(self, *args, **options):
        warehouses = Warehouse.objects.filter(is_active=True)
        if options.get('warehouse'):
            warehouses = Warehouse.objects.filter(code=options['warehouse'])
            if not warehouses.exists():
                raise CommandError(f"Warehouse {options['warehouse']} does not exist")

        self.stdout.write("Starting Ledger Audit...")
        total = 0
        for wh in warehouses:
            for mismatch in audit_warehouse(wh.id):
                total += 1
                self.stdout.write(
                    self.style.WARNING(
                        f"MISMATCH {wh.code} SKU {mismatch['sku_code']} :: {'; '.join(mismatch['problems'])}"
                    )
                )

        if total:
            self.stdout.write(self.style.ERROR(f"Audit Complete. Found {total} discrepancies."))
        else:
            self.stdout.write(self.style.SUCCESS("Audit Complete. Ledger is consistent."))
