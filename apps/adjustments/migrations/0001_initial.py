import uuid
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('inventory', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='StockAdjustment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('adjustment_type', models.CharField(choices=[('increase', 'Increase'), ('decrease', 'Decrease')], max_length=10)),
                ('quantity_adjusted', models.PositiveIntegerField()),
                ('quantity_before', models.IntegerField()),
                ('quantity_after', models.IntegerField()),
                ('reason', models.CharField(choices=[('damage', 'Damaged Goods'), ('theft', 'Theft/Loss'), ('found', 'Found/Discovered'), ('expired', 'Expired Products'), ('returned', 'Customer Returns'), ('transfer_in', 'Transfer In'), ('transfer_out', 'Transfer Out'), ('correction', 'Data Correction'), ('recount', 'Physical Recount'), ('other', 'Other (See Notes)')], max_length=20)),
                ('notes', models.TextField(blank=True)),
                ('reference_number', models.CharField(editable=False, max_length=32, unique=True)),
                ('adjusted_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('adjusted_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='stock_adjustments', to=settings.AUTH_USER_MODEL)),
                ('inventory', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='adjustments', to='inventory.inventorystock')),
            ],
            options={
                'ordering': ['-adjusted_at'],
                'indexes': [models.Index(fields=['inventory', '-adjusted_at'], name='adjustment_inventory_idx')],
            },
        ),
    ]
