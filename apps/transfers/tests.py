from datetime import timedelta
from unittest.mock import patch

from django.test import TestCase
from django.contrib.auth import get_user_model
from django.urls import reverse
from django.utils import timezone

from rest_framework.test import APITestCase, APIClient
from rest_framework import status

from apps.catalog.models import Product
from apps.warehouse.models import Warehouse
from apps.inventory.models import InventoryStock
from apps.inventory.services import InventoryService
from apps.transfers.models import StockTransfer, StockTransferEvent, TransferStatus
from apps.transfers.services import TransferService
from apps.utils.exceptions import (
    DuplicateRequestError,
    InsufficientAvailabilityError,
    InvalidQuantityError,
    InvalidStateError,
    LedgerValidationError,
    SameWarehouseError,
)
from apps.utils.utils import date_stamp

User = get_user_model()


class TransferFixtureMixin:
    def make_fixtures(self):
        self.clerk = User.objects.create_user(username="clerk", password="testpass123")
        self.manager = User.objects.create_user(username="manager", password="testpass123", is_staff=True)
        self.wh1 = Warehouse.objects.create(name="North", code="WH-N")
        self.wh2 = Warehouse.objects.create(name="South", code="WH-S")
        self.product = Product.objects.create(sku_code="TEA-250G", name="Tea 250g")
        self.source = InventoryService.create_inventory(self.product.id, self.wh1.id, quantity_on_hand=75)

    def on_hand(self, warehouse):
        stock = InventoryStock.objects.filter(product=self.product, warehouse=warehouse).first()
        return stock.quantity_on_hand if stock else None


class TransferLifecycleTests(TransferFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()

    def test_cancel_in_transit_restores_source(self):
        transfer = TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 20, actor=self.clerk)
        self.assertEqual(transfer.transfer_status, TransferStatus.PENDING)
        self.assertEqual(transfer.reference_number, f"ST-{date_stamp()}-0001")

        TransferService.approve_transfer(transfer.id, self.manager)
        TransferService.mark_in_transit(transfer.id, self.clerk)
        self.assertEqual(self.on_hand(self.wh1), 55)

        transfer = TransferService.cancel_transfer(transfer.id, "damaged in transit", self.manager)

        self.assertEqual(transfer.transfer_status, TransferStatus.CANCELLED)
        self.assertEqual(transfer.cancellation_reason, "damaged in transit")
        self.assertEqual(transfer.cancelled_by, self.manager)
        self.assertEqual(self.on_hand(self.wh1), 75)
        self.assertIsNone(self.on_hand(self.wh2))
        self.assertEqual(
            set(transfer.events.values_list('activity', flat=True)),
            {"initiated", "approved", "in_transit", "cancelled"},
        )

    def test_full_lifecycle_credits_new_destination(self):
        transfer = TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 30)
        TransferService.approve_transfer(transfer.id, self.manager)
        self.assertEqual(self.on_hand(self.wh1), 75)

        TransferService.mark_in_transit(transfer.id)
        transfer = TransferService.complete_transfer(transfer.id, self.manager)

        self.assertEqual(transfer.transfer_status, TransferStatus.COMPLETED)
        self.assertIsNotNone(transfer.completed_at)
        self.assertEqual(self.on_hand(self.wh1), 45)
        self.assertEqual(self.on_hand(self.wh2), 30)

        with self.assertRaises(InvalidStateError) as ctx:
            TransferService.cancel_transfer(transfer.id, "too late")
        self.assertEqual(ctx.exception.current_state, TransferStatus.COMPLETED)

    def test_cancel_before_shipping_leaves_stock_alone(self):
        pending = TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 10)
        TransferService.cancel_transfer(pending.id, "not needed")

        approved = TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 10)
        TransferService.approve_transfer(approved.id, self.manager)
        TransferService.cancel_transfer(approved.id, "not needed")

        self.assertEqual(self.on_hand(self.wh1), 75)
        self.assertIsNone(self.on_hand(self.wh2))

    def test_cancel_requires_reason_and_open_state(self):
        transfer = TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 10)
        with self.assertRaises(LedgerValidationError):
            TransferService.cancel_transfer(transfer.id, "   ")
        TransferService.cancel_transfer(transfer.id, "duplicate")
        with self.assertRaises(InvalidStateError):
            TransferService.cancel_transfer(transfer.id, "again")

    def test_quantity_above_availability_writes_nothing(self):
        with self.assertRaises(InsufficientAvailabilityError):
            TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 76)
        self.assertFalse(StockTransfer.objects.exists())
        self.assertFalse(StockTransferEvent.objects.exists())

    def test_request_validation(self):
        with self.assertRaises(SameWarehouseError):
            TransferService.initiate_transfer(self.wh1.id, self.wh1.id, self.product.id, 1)
        with self.assertRaises(InvalidQuantityError):
            TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 0)
        with self.assertRaises(InsufficientAvailabilityError):
            TransferService.initiate_transfer(self.wh2.id, self.wh1.id, self.product.id, 1)

    def test_duplicate_open_request(self):
        TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 5)
        with self.assertRaises(DuplicateRequestError):
            TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 5)

    def test_steps_must_follow_order(self):
        transfer = TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 5)
        with self.assertRaises(InvalidStateError):
            TransferService.mark_in_transit(transfer.id)
        with self.assertRaises(InvalidStateError):
            TransferService.complete_transfer(transfer.id, self.manager)
        TransferService.approve_transfer(transfer.id, self.manager)
        with self.assertRaises(InvalidStateError):
            TransferService.approve_transfer(transfer.id, self.manager)

    def test_approval_revalidates_availability(self):
        transfer = TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 50)
        InventoryService.reserve(self.source.id, 40)
        with self.assertRaises(InsufficientAvailabilityError):
            TransferService.approve_transfer(transfer.id, self.manager)
        transfer.refresh_from_db()
        self.assertEqual(transfer.transfer_status, TransferStatus.PENDING)

    def test_update_quantity_only_while_pending(self):
        transfer = TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 5)
        transfer = TransferService.update_transfer(transfer.id, actor=self.clerk, quantity=8, notes="rush")
        self.assertEqual(transfer.quantity_transferred, 8)
        self.assertEqual(transfer.notes, "rush")
        self.assertTrue(transfer.events.filter(activity="updated").exists())

        with self.assertRaises(InsufficientAvailabilityError):
            TransferService.update_transfer(transfer.id, quantity=100)

        TransferService.approve_transfer(transfer.id, self.manager)
        with self.assertRaises(InvalidStateError):
            TransferService.update_transfer(transfer.id, quantity=3)
        transfer = TransferService.update_transfer(transfer.id, notes="call ahead")
        self.assertEqual(transfer.notes, "call ahead")

    def test_bulk_operations_report_per_transfer(self):
        wh3 = Warehouse.objects.create(name="East", code="WH-E")
        first = TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 5)
        second = TransferService.initiate_transfer(self.wh1.id, wh3.id, self.product.id, 5)
        TransferService.approve_transfer(second.id, self.manager)

        result = TransferService.bulk_approve_transfers([first.id, second.id], self.manager)
        self.assertEqual(result["approved"], 1)
        self.assertEqual(result["failed"], 1)
        self.assertIn("cannot be approved", result["errors"][0])

        TransferService.mark_in_transit(second.id)
        result = TransferService.bulk_cancel_transfers([first.id, second.id], "season over", self.manager)
        self.assertEqual(result, {"cancelled": 2, "failed": 0, "errors": []})
        self.assertEqual(self.on_hand(self.wh1), 75)

    def test_queries(self):
        wh3 = Warehouse.objects.create(name="East", code="WH-E")
        stale = TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 5)
        fresh = TransferService.initiate_transfer(self.wh1.id, wh3.id, self.product.id, 5)
        StockTransfer.objects.filter(id=stale.id).update(initiated_at=timezone.now() - timedelta(days=10))

        self.assertEqual(list(TransferService.overdue_transfers()), [stale])
        self.assertEqual(TransferService.overdue_transfers(days=30).count(), 0)
        self.assertEqual(TransferService.pending_approvals().count(), 2)
        self.assertEqual(TransferService.transfer_history(self.product.id, wh3.id).get(), fresh)

        TransferService.approve_transfer(fresh.id, self.manager)
        TransferService.mark_in_transit(fresh.id)
        TransferService.complete_transfer(fresh.id, self.manager)

        analytics = TransferService.transfer_analytics()
        self.assertEqual(analytics["total_transfers"], 2)
        self.assertEqual(analytics["completed_transfers"], 1)
        self.assertEqual(analytics["total_quantity_transferred"], 5)
        self.assertEqual(TransferService.transfer_analytics(wh3.id)["total_transfers"], 1)


class TransferRollbackTests(TransferFixtureMixin, TestCase):
    """
    A failure after the inventory write must leave no trace of the step.
    """

    def setUp(self):
        self.make_fixtures()
        self.transfer = TransferService.initiate_transfer(self.wh1.id, self.wh2.id, self.product.id, 20)
        TransferService.approve_transfer(self.transfer.id, self.manager)

    def test_ship_failure_after_debit_rolls_back(self):
        with patch.object(TransferService, "_record_event", side_effect=RuntimeError("event store down")):
            with self.assertLogs("apps.utils.resilience", level="ERROR"):
                with self.assertRaises(RuntimeError):
                    TransferService.mark_in_transit(self.transfer.id, self.clerk)

        self.transfer.refresh_from_db()
        self.assertEqual(self.transfer.transfer_status, TransferStatus.APPROVED)
        self.assertIsNone(self.transfer.shipped_at)
        self.assertEqual(self.on_hand(self.wh1), 75)
        self.assertEqual(self.transfer.events.count(), 2)
        self.assertFalse(self.source.ledger_entries.filter(reference=self.transfer.reference_number).exists())

    def test_cancel_failure_after_recredit_rolls_back(self):
        TransferService.mark_in_transit(self.transfer.id, self.clerk)

        with patch.object(TransferService, "_record_event", side_effect=RuntimeError("event store down")):
            with self.assertLogs("apps.utils.resilience", level="ERROR"):
                with self.assertRaises(RuntimeError):
                    TransferService.cancel_transfer(self.transfer.id, "truck broke down", self.manager)

        self.transfer.refresh_from_db()
        self.assertEqual(self.transfer.transfer_status, TransferStatus.IN_TRANSIT)
        self.assertEqual(self.transfer.cancellation_reason, "")
        self.assertEqual(self.on_hand(self.wh1), 55)
        self.assertEqual(self.transfer.events.count(), 3)
        self.assertEqual(
            self.source.ledger_entries.filter(reference=self.transfer.reference_number).count(), 1
        )


class TransferAPITests(TransferFixtureMixin, APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.make_fixtures()

    def _initiate(self, quantity=20):
        return self.client.post(
            reverse("stock-transfer-list"),
            {
                "from_warehouse_id": self.wh1.id,
                "to_warehouse_id": self.wh2.id,
                "product_id": str(self.product.id),
                "quantity": quantity,
            },
            format="json",
        )

    def test_transfer_through_api(self):
        self.client.force_authenticate(self.clerk)
        resp = self._initiate()
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        transfer_id = resp.data["id"]

        resp = self.client.post(reverse("stock-transfer-approve", kwargs={"pk": transfer_id}))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.manager)
        self.client.post(reverse("stock-transfer-approve", kwargs={"pk": transfer_id}))
        resp = self.client.post(reverse("stock-transfer-ship", kwargs={"pk": transfer_id}))
        self.assertEqual(resp.data["transfer_status"], "in_transit")

        resp = self.client.post(reverse("stock-transfer-complete", kwargs={"pk": transfer_id}))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["transfer_status"], "completed")

        resp = self.client.get(reverse("stock-transfer-detail", kwargs={"pk": transfer_id}))
        self.assertEqual(len(resp.data["events"]), 4)

    def test_insufficient_availability_response(self):
        self.client.force_authenticate(self.clerk)
        resp = self._initiate(quantity=500)
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["available"], 75)
        self.assertEqual(resp.data["requested"], 500)

    def test_invalid_transition_returns_conflict(self):
        self.client.force_authenticate(self.manager)
        transfer_id = self._initiate().data["id"]
        resp = self.client.post(reverse("stock-transfer-complete", kwargs={"pk": transfer_id}))
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["current_state"], "pending")

    def test_partial_update_and_bulk_cancel(self):
        self.client.force_authenticate(self.clerk)
        transfer_id = self._initiate().data["id"]
        resp = self.client.patch(
            reverse("stock-transfer-detail", kwargs={"pk": transfer_id}), {"quantity": 10}, format="json"
        )
        self.assertEqual(resp.data["quantity_transferred"], 10)

        self.client.force_authenticate(self.manager)
        resp = self.client.post(
            reverse("stock-transfer-bulk-cancel"),
            {"transfer_ids": [transfer_id], "reason": "plan changed"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["cancelled"], 1)

    def test_pending_and_analytics(self):
        self.client.force_authenticate(self.clerk)
        self._initiate()
        resp = self.client.get(reverse("stock-transfer-pending"))
        self.assertEqual(resp.data["count"], 1)
        resp = self.client.get(reverse("stock-transfer-analytics"), {"warehouse_id": self.wh2.id})
        self.assertEqual(resp.data["pending_transfers"], 1)
