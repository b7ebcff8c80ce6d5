import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('adjustments', '0001_initial'),
        ('inventory', '0002_protect_ledger_entries'),
    ]

    operations = [
        migrations.AlterField(
            model_name='stockadjustment',
            name='inventory',
            field=models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='adjustments', to='inventory.inventorystock'),
        ),
    ]
