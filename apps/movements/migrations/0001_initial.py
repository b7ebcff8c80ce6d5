import uuid
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('warehouse', '0001_initial'),
        ('inventory', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('reference_number', models.CharField(editable=False, max_length=32, unique=True)),
                ('movement_type', models.CharField(choices=[('adjustment_increase', 'Adjustment Increase'), ('adjustment_decrease', 'Adjustment Decrease'), ('transfer_in', 'Transfer In'), ('transfer_out', 'Transfer Out'), ('purchase_receive', 'Purchase Receive'), ('sale_fulfill', 'Sale Fulfill'), ('return_customer', 'Customer Return'), ('return_supplier', 'Supplier Return'), ('damage_write_off', 'Damage Write-off'), ('expiry_write_off', 'Expiry Write-off')], max_length=30)),
                ('quantity_moved', models.IntegerField(help_text='Signed: positive adds stock, negative removes it')),
                ('quantity_before', models.IntegerField()),
                ('quantity_after', models.IntegerField()),
                ('unit_cost', models.DecimalField(decimal_places=4, default=0, max_digits=12)),
                ('total_value', models.DecimalField(decimal_places=4, default=0, max_digits=16)),
                ('reason', models.CharField(blank=True, max_length=255)),
                ('notes', models.TextField(blank=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('related_document_type', models.CharField(blank=True, max_length=50)),
                ('related_document_id', models.CharField(blank=True, max_length=100)),
                ('status', models.CharField(choices=[('pending', 'Pending Approval'), ('approved', 'Approved'), ('rejected', 'Rejected'), ('applied', 'Applied')], db_index=True, default='pending', max_length=20)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('applied_at', models.DateTimeField(blank=True, null=True)),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='approved_stock_movements', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_stock_movements', to=settings.AUTH_USER_MODEL)),
                ('inventory', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='inventory.inventorystock')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_movements', to='catalog.product')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_movements', to='warehouse.warehouse')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'created_at'], name='movement_status_idx'),
                    models.Index(fields=['product', 'warehouse'], name='movement_product_wh_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quantity_moved', 0), _negated=True), name='movement_quantity_non_zero'),
                ],
            },
        ),
    ]
