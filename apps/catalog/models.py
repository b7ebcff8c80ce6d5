# apps/catalog/models.py
import uuid
from django.db import models


class Product(models.Model):
    """
    Catalog master data, owned by the catalog team.
    The ledger only needs identity, a code and a cost for movement valuation.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sku_code = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="Human-readable code (e.g. MILK-1L-AMUL)",
    )
    name = models.CharField(max_length=255)
    unit = models.CharField(max_length=50, default='pcs')
    cost_price = models.DecimalField(
        max_digits=12,
        decimal_places=4,
        default=0,
        help_text="Internal purchase cost price, used to value stock movements",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["sku_code"]

    def __str__(self):
        return f"{self.sku_code} - {self.name}"
