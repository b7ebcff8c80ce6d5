import re
from unittest.mock import patch

from django.test import TestCase
from django.contrib.auth import get_user_model
from django.urls import reverse

from rest_framework.test import APITestCase, APIClient
from rest_framework import status

from apps.catalog.models import Product
from apps.warehouse.models import Warehouse
from apps.inventory.models import InventoryLedgerEntry
from apps.inventory.services import InventoryService
from apps.adjustments.models import StockAdjustment
from apps.adjustments.services import AdjustmentService
from apps.utils.exceptions import (
    ImmutableRecordError,
    InvalidChoiceError,
    InvalidQuantityError,
    NegativeQuantityError,
    NotFoundError,
    ReferenceGenerationError,
)

User = get_user_model()


class AdjustmentServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="counter", password="testpass123")
        self.warehouse = Warehouse.objects.create(name="Main WH", code="WH-1")
        self.product = Product.objects.create(sku_code="RICE-5KG", name="Rice 5kg")
        self.stock = InventoryService.create_inventory(self.product.id, self.warehouse.id, quantity_on_hand=70)

    def test_found_goods_increase(self):
        adj = AdjustmentService.create_adjustment(
            self.stock.id, "increase", 5, "found", actor=self.user
        )

        self.assertEqual(adj.quantity_before, 70)
        self.assertEqual(adj.quantity_after, 75)
        self.assertEqual(adj.adjusted_by, self.user)
        self.assertRegex(adj.reference_number, r"^ADJ-\d{8}-[0-9A-F]{6}$")
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 75)
        self.assertEqual(self.stock.quantity_available, 75)

        entry = self.stock.ledger_entries.get(reference=adj.reference_number)
        self.assertEqual(entry.entry_type, InventoryLedgerEntry.EntryType.SET_ON_HAND)
        self.assertEqual(entry.quantity_change, 5)

    def test_negative_quantity_is_normalized(self):
        adj = AdjustmentService.create_adjustment(self.stock.id, "decrease", -20, "damage")
        self.assertEqual(adj.quantity_adjusted, 20)
        self.assertEqual(adj.quantity_after, 50)

    def test_decrease_clamps_at_zero(self):
        adj = AdjustmentService.create_adjustment(self.stock.id, "decrease", 500, "theft")
        self.assertEqual(adj.quantity_after, 0)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 0)

    def test_decrease_below_reserved_rolls_back_audit_row(self):
        InventoryService.reserve(self.stock.id, 60)
        with self.assertRaises(NegativeQuantityError):
            AdjustmentService.create_adjustment(self.stock.id, "decrease", 20, "expired")

        self.assertFalse(StockAdjustment.objects.exists())
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 70)
        self.assertEqual(self.stock.quantity_available, 10)

    def test_rejects_unknown_choices_and_zero(self):
        with self.assertRaises(InvalidChoiceError):
            AdjustmentService.create_adjustment(self.stock.id, "sideways", 1, "found")
        with self.assertRaises(InvalidChoiceError):
            AdjustmentService.create_adjustment(self.stock.id, "increase", 1, "gremlins")
        with self.assertRaises(InvalidQuantityError):
            AdjustmentService.create_adjustment(self.stock.id, "increase", 0, "found")
        self.assertEqual(StockAdjustment.objects.count(), 0)

    def test_missing_inventory(self):
        with self.assertRaises(NotFoundError):
            AdjustmentService.create_adjustment(
                "00000000-0000-0000-0000-000000000000", "increase", 1, "found"
            )

    def test_adjustments_are_immutable(self):
        adj = AdjustmentService.create_adjustment(self.stock.id, "increase", 1, "recount")
        adj.notes = "edited"
        with self.assertRaises(ImmutableRecordError):
            adj.save()
        with self.assertRaises(ImmutableRecordError):
            adj.delete()

    def test_reference_collision_exhaustion(self):
        AdjustmentService.create_adjustment(self.stock.id, "increase", 1, "recount")
        taken = StockAdjustment.objects.get().reference_number
        with patch("apps.utils.utils.random_reference", return_value=taken):
            with self.assertRaises(ReferenceGenerationError):
                AdjustmentService.create_adjustment(self.stock.id, "increase", 1, "recount")
        self.assertEqual(StockAdjustment.objects.count(), 1)

    def test_summary_and_queries(self):
        AdjustmentService.create_adjustment(self.stock.id, "increase", 4, "found")
        AdjustmentService.create_adjustment(self.stock.id, "increase", 6, "returned")
        AdjustmentService.create_adjustment(self.stock.id, "decrease", 3, "damage", actor=self.user)

        summary = AdjustmentService.adjustment_summary()
        self.assertEqual(summary["total_adjustments"], 3)
        self.assertEqual(summary["increases"], {"count": 2, "total_quantity": 10})
        self.assertEqual(summary["decreases"], {"count": 1, "total_quantity": 3})

        self.assertEqual(AdjustmentService.adjustments_for_inventory(self.stock.id).count(), 3)
        self.assertEqual(AdjustmentService.adjustments_by_user(self.user.id).count(), 1)
        self.assertEqual(len(AdjustmentService.recent_adjustments(2)), 2)
        self.assertEqual(AdjustmentService.adjustment_reasons()["recount"], "Physical Recount")


class AdjustmentAPITests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.staff = User.objects.create_user(username="manager", password="testpass123", is_staff=True)
        self.viewer = User.objects.create_user(username="viewer", password="testpass123")
        warehouse = Warehouse.objects.create(name="Main WH", code="WH-1")
        product = Product.objects.create(sku_code="OIL-1L", name="Oil 1L")
        self.stock = InventoryService.create_inventory(product.id, warehouse.id, quantity_on_hand=10)

    def test_staff_creates_adjustment(self):
        self.client.force_authenticate(self.staff)
        resp = self.client.post(
            reverse("stock-adjustment-list"),
            {"inventory_id": str(self.stock.id), "adjustment_type": "increase", "quantity_adjusted": 5, "reason": "found"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["quantity_after"], 15)
        self.assertEqual(resp.data["adjusted_by"], "manager")
        self.assertTrue(re.match(r"^ADJ-", resp.data["reference_number"]))

    def test_unknown_reason_is_rejected_by_serializer(self):
        self.client.force_authenticate(self.staff)
        resp = self.client.post(
            reverse("stock-adjustment-list"),
            {"inventory_id": str(self.stock.id), "adjustment_type": "increase", "quantity_adjusted": 5, "reason": "magic"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_viewer_can_read_reasons_but_not_create(self):
        self.client.force_authenticate(self.viewer)
        resp = self.client.get(reverse("stock-adjustment-reasons"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["damage"], "Damaged Goods")

        resp = self.client.post(
            reverse("stock-adjustment-list"),
            {"inventory_id": str(self.stock.id), "adjustment_type": "increase", "quantity_adjusted": 5, "reason": "found"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_summary_endpoint(self):
        AdjustmentService.create_adjustment(self.stock.id, "decrease", 2, "damage")
        self.client.force_authenticate(self.viewer)
        resp = self.client.get(reverse("stock-adjustment-summary"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["decreases"]["count"], 1)
        self.assertEqual(len(resp.data["recent_adjustments"]), 1)
