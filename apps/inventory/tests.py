# apps/inventory/tests.py
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.test import TestCase
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import IntegrityError, transaction
from django.db.models.deletion import ProtectedError
from django.urls import reverse

from rest_framework.test import APITestCase, APIClient
from rest_framework import status

from apps.catalog.models import Product
from apps.warehouse.models import Warehouse
from apps.inventory.models import InventoryStock, InventoryLedgerEntry
from apps.inventory.services import InventoryService
from apps.inventory.signals import (
    stock_reservation_requested,
    stock_release_requested,
    stock_fulfilled,
    stock_received,
)
from apps.inventory.audit import audit_warehouse
from apps.inventory.tasks import audit_inventory_ledger, audit_warehouse_ledger
from apps.adjustments.models import StockAdjustment
from apps.adjustments.services import AdjustmentService
from apps.movements.services import MovementService
from apps.utils.exceptions import (
    DuplicateKeyError,
    ImmutableRecordError,
    InsufficientAvailabilityError,
    InvalidQuantityError,
    InvalidStateError,
    NegativeQuantityError,
    NotFoundError,
)

User = get_user_model()


def assert_consistent(testcase, stock):
    stock.refresh_from_db()
    testcase.assertEqual(stock.quantity_available, stock.quantity_on_hand - stock.quantity_reserved)
    testcase.assertGreaterEqual(stock.quantity_on_hand, 0)
    testcase.assertGreaterEqual(stock.quantity_reserved, 0)
    testcase.assertGreaterEqual(stock.quantity_available, 0)


class InventoryFixtureMixin:
    def make_fixtures(self):
        self.user = User.objects.create_user(username="keeper", password="testpass123")
        self.warehouse = Warehouse.objects.create(name="Main WH", code="WH-1")
        self.other_warehouse = Warehouse.objects.create(name="Overflow WH", code="WH-2")
        self.product = Product.objects.create(sku_code="MILK-1L", name="Milk 1L", cost_price="2.5000")


class InventoryServiceTests(InventoryFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.stock = InventoryService.create_inventory(
            self.product.id, self.warehouse.id, quantity_on_hand=10, actor=self.user
        )

    def test_create_derives_available_and_logs_entry(self):
        self.assertEqual(self.stock.quantity_available, 10)
        entry = self.stock.ledger_entries.get()
        self.assertEqual(entry.entry_type, InventoryLedgerEntry.EntryType.CREATE)
        self.assertEqual(entry.quantity_change, 10)
        self.assertEqual(entry.created_by, self.user)

    def test_duplicate_pair_is_rejected(self):
        with self.assertRaises(DuplicateKeyError):
            InventoryService.create_inventory(self.product.id, self.warehouse.id)

    def test_reserved_cannot_exceed_on_hand_at_creation(self):
        with self.assertRaises(NegativeQuantityError):
            InventoryService.create_inventory(
                self.product.id, self.other_warehouse.id, quantity_on_hand=2, quantity_reserved=3
            )
        self.assertFalse(InventoryStock.objects.filter(warehouse=self.other_warehouse).exists())

    def test_reserve_and_release(self):
        InventoryService.reserve(self.stock.id, 4, reference="SO-1")
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_reserved, 4)
        self.assertEqual(self.stock.quantity_available, 6)

        InventoryService.release(self.stock.id, 3, reference="SO-1")
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_reserved, 1)
        assert_consistent(self, self.stock)

    def test_release_more_than_reserved_floors_at_zero(self):
        InventoryService.reserve(self.stock.id, 2)
        InventoryService.release(self.stock.id, 5)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_reserved, 0)
        self.assertEqual(self.stock.quantity_available, 10)

    def test_reserve_more_than_available_changes_nothing(self):
        InventoryService.set_on_hand(self.stock.id, 5)
        entries_before = InventoryLedgerEntry.objects.count()

        with self.assertRaises(InsufficientAvailabilityError) as ctx:
            InventoryService.reserve(self.stock.id, 10)

        self.assertEqual(ctx.exception.available, 5)
        self.assertEqual(ctx.exception.requested, 10)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_reserved, 0)
        self.assertEqual(self.stock.quantity_available, 5)
        self.assertEqual(InventoryLedgerEntry.objects.count(), entries_before)

    def test_quantities_must_be_positive_integers(self):
        for bad in (0, -1, 1.5, True):
            with self.assertRaises(InvalidQuantityError):
                InventoryService.reserve(self.stock.id, bad)

    def test_set_on_hand_below_reserved_is_refused(self):
        InventoryService.reserve(self.stock.id, 6)
        with self.assertRaises(NegativeQuantityError):
            InventoryService.set_on_hand(self.stock.id, 5)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 10)

    def test_fulfill_consumes_reservation_and_on_hand(self):
        InventoryService.reserve(self.stock.id, 4)
        InventoryService.fulfill(self.stock.id, 3, reference="SO-9")
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 7)
        self.assertEqual(self.stock.quantity_reserved, 1)
        self.assertEqual(self.stock.quantity_available, 6)

    def test_fulfill_without_reservation_fails(self):
        with self.assertRaises(InsufficientAvailabilityError):
            InventoryService.fulfill(self.stock.id, 1)

    def test_increase_stock_creates_missing_record(self):
        stock = InventoryService.increase_stock(self.other_warehouse.id, self.product.id, 7)
        self.assertEqual(stock.quantity_on_hand, 7)
        self.assertEqual(stock.quantity_available, 7)
        self.assertEqual(stock.ledger_entries.count(), 2)

    def test_decrease_stock_checks_available(self):
        InventoryService.reserve(self.stock.id, 8)
        with self.assertRaises(InsufficientAvailabilityError):
            InventoryService.decrease_stock(self.warehouse.id, self.product.id, 3)
        stock = InventoryService.decrease_stock(self.warehouse.id, self.product.id, 2)
        self.assertEqual(stock.quantity_on_hand, 8)
        self.assertEqual(stock.quantity_available, 0)

    def test_decrease_stock_without_record(self):
        with self.assertRaises(InsufficientAvailabilityError):
            InventoryService.decrease_stock(self.other_warehouse.id, self.product.id, 1)

    def test_delete_refused_while_reserved(self):
        InventoryService.reserve(self.stock.id, 1)
        with self.assertRaises(InvalidStateError) as ctx:
            InventoryService.delete_inventory(self.stock.id)
        self.assertEqual(ctx.exception.current_state["quantity_reserved"], 1)

    def test_delete_refused_when_history_exists(self):
        with self.assertRaises(InvalidStateError) as ctx:
            InventoryService.delete_inventory(self.stock.id)
        self.assertEqual(ctx.exception.current_state["ledger_entries"], 1)
        self.assertTrue(InventoryStock.objects.filter(id=self.stock.id).exists())
        self.assertEqual(InventoryLedgerEntry.objects.filter(inventory_id=self.stock.id).count(), 1)

    def test_delete_keeps_adjustment_and_movement_trail(self):
        AdjustmentService.create_adjustment(self.stock.id, "decrease", 2, "damage", actor=self.user)
        MovementService.create_movement(self.product.id, self.warehouse.id, "sale_fulfill", -3)

        with self.assertNoLogs("apps.utils.resilience", level="ERROR"):
            with self.assertRaises(InvalidStateError) as ctx:
                InventoryService.delete_inventory(self.stock.id)

        self.assertEqual(
            ctx.exception.current_state,
            {"ledger_entries": 2, "adjustments": 1, "movements": 1},
        )
        self.assertEqual(StockAdjustment.objects.filter(inventory_id=self.stock.id).count(), 1)
        self.assertEqual(InventoryLedgerEntry.objects.filter(inventory_id=self.stock.id).count(), 2)

    def test_audit_rows_protect_their_inventory(self):
        with self.assertRaises(ProtectedError):
            InventoryStock.objects.filter(id=self.stock.id).delete()

    def test_record_without_history_can_be_deleted(self):
        bare = InventoryStock.objects.create(product=self.product, warehouse=self.other_warehouse)
        InventoryService.delete_inventory(bare.id)
        self.assertFalse(InventoryStock.objects.filter(id=bare.id).exists())

    def test_update_touches_metadata_only(self):
        stock = InventoryService.update_inventory(
            self.stock.id, low_stock_threshold=4, notes="aisle 7", actor=self.user
        )
        self.assertEqual(stock.low_stock_threshold, 4)
        self.assertEqual(stock.notes, "aisle 7")
        self.assertEqual(stock.quantity_on_hand, 10)
        self.assertEqual(self.stock.ledger_entries.count(), 1)

        stock = InventoryService.update_inventory(self.stock.id, notes="")
        self.assertEqual(stock.low_stock_threshold, 4)
        self.assertEqual(stock.notes, "")

        with self.assertRaises(InvalidQuantityError):
            InventoryService.update_inventory(self.stock.id, low_stock_threshold=-1)

    def test_inventory_analytics(self):
        other_product = Product.objects.create(sku_code="EGGS-12", name="Eggs", cost_price="3.0000")
        InventoryService.create_inventory(other_product.id, self.other_warehouse.id, quantity_on_hand=4)

        analytics = InventoryService.inventory_analytics()
        # 10 x 2.50 + 4 x 3.00
        self.assertEqual(analytics["total_inventory_value"], Decimal("37"))
        self.assertEqual(analytics["low_stock_items"], 2)
        self.assertEqual(analytics["total_products_tracked"], 2)
        self.assertEqual(analytics["total_warehouses_active"], 2)

        scoped = InventoryService.inventory_analytics(self.warehouse.id)
        self.assertEqual(scoped["total_inventory_value"], Decimal("25"))
        self.assertEqual(scoped["total_warehouses_active"], 1)

    def test_missing_inventory_is_not_found(self):
        with self.assertRaises(NotFoundError):
            InventoryService.get_inventory(self.product.id, self.other_warehouse.id)
        self.assertEqual(InventoryService.available_quantity(self.product.id, self.other_warehouse.id), 0)

    def test_low_stock_lists_records_at_threshold(self):
        InventoryService.reserve(self.stock.id, 1)
        self.assertEqual(list(InventoryService.low_stock()), [self.stock])
        self.assertEqual(list(InventoryService.low_stock(self.other_warehouse.id)), [])

    def test_ledger_sum_matches_on_hand(self):
        InventoryService.increase_stock(self.warehouse.id, self.product.id, 5)
        InventoryService.reserve(self.stock.id, 3)
        InventoryService.fulfill(self.stock.id, 2)
        InventoryService.set_on_hand(self.stock.id, 4)
        self.stock.refresh_from_db()
        total = sum(self.stock.ledger_entries.values_list('quantity_change', flat=True))
        self.assertEqual(total, self.stock.quantity_on_hand)
        assert_consistent(self, self.stock)

    def test_ledger_entries_are_append_only(self):
        entry = self.stock.ledger_entries.first()
        entry.notes = "tampered"
        with self.assertRaises(ImmutableRecordError):
            entry.save()
        with self.assertRaises(ImmutableRecordError):
            entry.delete()


class InventoryConstraintTests(InventoryFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.stock = InventoryService.create_inventory(self.product.id, self.warehouse.id, quantity_on_hand=5)

    def test_save_recomputes_available_with_update_fields(self):
        self.stock.quantity_reserved = 2
        self.stock.save(update_fields=["quantity_reserved"])
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_available, 3)

    def test_database_rejects_inconsistent_available(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                InventoryStock.objects.filter(id=self.stock.id).update(quantity_available=99)

    def test_database_rejects_negative_on_hand(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                InventoryStock.objects.filter(id=self.stock.id).update(
                    quantity_on_hand=-1, quantity_available=-1
                )


class FulfillmentHookTests(InventoryFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.stock = InventoryService.create_inventory(self.product.id, self.warehouse.id, quantity_on_hand=20)

    def test_order_lifecycle_through_signals(self):
        stock_reservation_requested.send(
            sender=None, inventory_id=self.stock.id, quantity=5, reference="SO-100", actor=self.user
        )
        stock_release_requested.send(
            sender=None, inventory_id=self.stock.id, quantity=1, reference="SO-100", actor=self.user
        )
        stock_fulfilled.send(
            sender=None, inventory_id=self.stock.id, quantity=4, reference="SO-100", actor=self.user
        )
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 16)
        self.assertEqual(self.stock.quantity_reserved, 0)
        self.assertEqual(
            self.stock.ledger_entries.filter(reference="SO-100").count(), 3
        )

    def test_reservation_failure_reaches_publisher(self):
        with self.assertRaises(InsufficientAvailabilityError):
            stock_reservation_requested.send(
                sender=None, inventory_id=self.stock.id, quantity=50, reference="SO-101"
            )

    def test_purchase_receipt(self):
        stock_received.send(
            sender=None,
            warehouse_id=self.other_warehouse.id,
            product_id=self.product.id,
            quantity=12,
            reference="PO-7",
        )
        stock = InventoryService.get_inventory(self.product.id, self.other_warehouse.id)
        self.assertEqual(stock.quantity_on_hand, 12)
        self.assertTrue(stock.ledger_entries.filter(reference_type="purchase_order").exists())


class LedgerAuditTests(InventoryFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.stock = InventoryService.create_inventory(self.product.id, self.warehouse.id, quantity_on_hand=8)

    def test_consistent_ledger_has_no_mismatches(self):
        InventoryService.increase_stock(self.warehouse.id, self.product.id, 2)
        self.assertEqual(audit_warehouse(self.warehouse.id), [])

    def test_out_of_band_write_is_reported_not_fixed(self):
        InventoryStock.objects.filter(id=self.stock.id).update(quantity_on_hand=50, quantity_available=50)

        mismatches = audit_warehouse_ledger(self.warehouse.id)

        self.assertEqual(len(mismatches), 1)
        self.assertIn("ledger total 8", mismatches[0]["problems"][0])
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 50)

    def test_master_task_fans_out_per_active_warehouse(self):
        Warehouse.objects.create(name="Closed", code="WH-X", is_active=False)
        with patch("apps.inventory.tasks.audit_warehouse_ledger.delay") as delay:
            result = audit_inventory_ledger()
        self.assertEqual(delay.call_count, 2)
        self.assertIn("2 warehouses", result)

    def test_management_command(self):
        InventoryStock.objects.filter(id=self.stock.id).update(quantity_on_hand=9, quantity_available=9)
        out = StringIO()
        call_command("audit_inventory_ledger", "--warehouse", "WH-1", stdout=out)
        self.assertIn("MISMATCH WH-1 SKU MILK-1L", out.getvalue())
        self.assertIn("Found 1 discrepancies", out.getvalue())


class InventoryAPITests(InventoryFixtureMixin, APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.make_fixtures()
        self.staff = User.objects.create_user(username="manager", password="testpass123", is_staff=True)
        self.stock = InventoryService.create_inventory(self.product.id, self.warehouse.id, quantity_on_hand=10)

    def test_requires_authentication(self):
        resp = self.client.get(reverse("inventory-stock-list"))
        self.assertIn(resp.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_list_and_lookup(self):
        self.client.force_authenticate(self.user)
        resp = self.client.get(reverse("inventory-stock-list"), {"warehouse_id": self.warehouse.id})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["results"][0]["quantity_available"], 10)

        resp = self.client.get(
            reverse("inventory-stock-lookup"),
            {"product_id": str(self.product.id), "warehouse_id": self.warehouse.id},
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["sku_code"], "MILK-1L")

    def test_non_staff_cannot_reserve(self):
        self.client.force_authenticate(self.user)
        resp = self.client.post(
            reverse("inventory-stock-reserve", kwargs={"pk": str(self.stock.id)}), {"quantity": 1}, format="json"
        )
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_reserve_over_availability_returns_error_body(self):
        self.client.force_authenticate(self.staff)
        resp = self.client.post(
            reverse("inventory-stock-reserve", kwargs={"pk": str(self.stock.id)}), {"quantity": 11}, format="json"
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "insufficient_availability")
        self.assertEqual(resp.data["available"], 10)

    def test_create_duplicate_returns_conflict(self):
        self.client.force_authenticate(self.staff)
        resp = self.client.post(
            reverse("inventory-stock-list"),
            {"product_id": str(self.product.id), "warehouse_id": self.warehouse.id},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)

    def test_delete_with_reservation_returns_current_state(self):
        InventoryService.reserve(self.stock.id, 2)
        self.client.force_authenticate(self.staff)
        resp = self.client.delete(reverse("inventory-stock-detail", kwargs={"pk": str(self.stock.id)}))
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["current_state"]["quantity_reserved"], 2)

    def test_delete_with_history_returns_conflict(self):
        MovementService.create_movement(self.product.id, self.warehouse.id, "sale_fulfill", -1)
        self.client.force_authenticate(self.staff)
        resp = self.client.delete(reverse("inventory-stock-detail", kwargs={"pk": str(self.stock.id)}))
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["code"], "invalid_state")
        self.assertEqual(resp.data["current_state"]["movements"], 1)
        self.assertTrue(InventoryStock.objects.filter(id=self.stock.id).exists())

    def test_partial_update_metadata(self):
        url = reverse("inventory-stock-detail", kwargs={"pk": str(self.stock.id)})
        self.client.force_authenticate(self.user)
        resp = self.client.patch(url, {"notes": "cold room"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.staff)
        resp = self.client.patch(
            url, {"low_stock_threshold": 3, "notes": "cold room", "quantity_on_hand": 999}, format="json"
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["low_stock_threshold"], 3)
        self.assertEqual(resp.data["notes"], "cold room")
        self.assertEqual(resp.data["quantity_on_hand"], 10)
        self.assertFalse(resp.data["is_low_stock"])

    def test_analytics_endpoint(self):
        self.client.force_authenticate(self.user)
        resp = self.client.get(reverse("inventory-stock-analytics"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["low_stock_items"], 1)
        self.assertEqual(resp.data["total_products_tracked"], 1)
        self.assertEqual(resp.data["total_inventory_value"], Decimal("25"))

    def test_ledger_endpoint(self):
        InventoryService.reserve(self.stock.id, 2, reference="SO-5")
        self.client.force_authenticate(self.user)
        resp = self.client.get(reverse("inventory-stock-ledger", kwargs={"pk": str(self.stock.id)}))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["count"], 2)
