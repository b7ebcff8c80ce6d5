import uuid
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('warehouse', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='InventoryStock',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('quantity_on_hand', models.IntegerField(default=0)),
                ('quantity_reserved', models.IntegerField(default=0)),
                ('quantity_available', models.IntegerField(default=0, editable=False)),
                ('low_stock_threshold', models.IntegerField(default=10)),
                ('notes', models.TextField(blank=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='inventory_stocks', to='catalog.product')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='inventory_stocks', to='warehouse.warehouse')),
            ],
            options={
                'verbose_name': 'Inventory Stock',
                'indexes': [models.Index(fields=['warehouse', 'product'], name='inventory_wh_product_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('product', 'warehouse'), name='inventory_unique_product_warehouse'),
                    models.CheckConstraint(condition=models.Q(('quantity_on_hand__gte', 0)), name='inventory_on_hand_non_negative'),
                    models.CheckConstraint(condition=models.Q(('quantity_reserved__gte', 0)), name='inventory_reserved_non_negative'),
                    models.CheckConstraint(condition=models.Q(('quantity_available__gte', 0)), name='inventory_available_non_negative'),
                    models.CheckConstraint(condition=models.Q(('quantity_available', models.F('quantity_on_hand') - models.F('quantity_reserved'))), name='inventory_available_derived'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InventoryLedgerEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('entry_type', models.CharField(choices=[('create', 'Record Created'), ('increase', 'Stock Increase'), ('decrease', 'Stock Decrease'), ('set_on_hand', 'On-hand Overwrite'), ('reserve', 'Reservation'), ('release', 'Release'), ('fulfill', 'Fulfillment')], max_length=20)),
                ('quantity_change', models.IntegerField(default=0, help_text='On-hand delta (+/-)')),
                ('reserved_change', models.IntegerField(default=0, help_text='Reserved delta (+/-)')),
                ('on_hand_after', models.IntegerField()),
                ('reserved_after', models.IntegerField()),
                ('available_after', models.IntegerField()),
                ('reference_type', models.CharField(blank=True, max_length=50)),
                ('reference', models.CharField(blank=True, db_index=True, max_length=100)),
                ('notes', models.TextField(blank=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('inventory', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ledger_entries', to='inventory.inventorystock')),
            ],
            options={
                'verbose_name_plural': 'Inventory ledger entries',
                'ordering': ['-created_at'],
            },
        ),
    ]
