from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase
from django.contrib.auth import get_user_model
from django.urls import reverse

from rest_framework.test import APITestCase, APIClient
from rest_framework import status

from apps.catalog.models import Product
from apps.warehouse.models import Warehouse
from apps.inventory.services import InventoryService
from apps.movements.models import StockMovement, MovementStatus
from apps.movements.services import MovementService
from apps.utils.exceptions import (
    InsufficientInventoryError,
    InvalidChoiceError,
    InvalidQuantityError,
    InvalidStateError,
    NegativeInventoryError,
    NotFoundError,
)
from apps.utils.utils import date_stamp

User = get_user_model()


class MovementFixtureMixin:
    def make_fixtures(self, on_hand=100):
        self.clerk = User.objects.create_user(username="clerk", password="testpass123")
        self.manager = User.objects.create_user(username="manager", password="testpass123", is_staff=True)
        self.warehouse = Warehouse.objects.create(name="Main WH", code="WH-1")
        self.product = Product.objects.create(sku_code="SUGAR-1KG", name="Sugar 1kg", cost_price="40.0000")
        self.stock = InventoryService.create_inventory(self.product.id, self.warehouse.id, quantity_on_hand=on_hand)


class MovementLifecycleTests(MovementFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()

    def test_sale_fulfill_waits_for_approval_then_applies(self):
        movement = MovementService.create_movement(
            self.product.id, self.warehouse.id, "sale_fulfill", -30, actor=self.clerk
        )

        self.assertEqual(movement.status, MovementStatus.PENDING)
        self.assertEqual(movement.quantity_before, 100)
        self.assertEqual(movement.quantity_after, 70)
        self.assertEqual(movement.unit_cost, Decimal("40.0000"))
        self.assertEqual(movement.total_value, Decimal("-1200.0000"))
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 100)

        movement = MovementService.approve_movement(movement.id, self.manager)

        self.assertEqual(movement.status, MovementStatus.APPLIED)
        self.assertEqual(movement.approved_by, self.manager)
        self.assertIsNotNone(movement.approved_at)
        self.assertIsNotNone(movement.applied_at)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 70)
        self.assertEqual(self.stock.quantity_available, 70)
        self.assertTrue(self.stock.ledger_entries.filter(reference=movement.reference_number).exists())

    def test_reference_numbers_follow_daily_sequence(self):
        first = MovementService.create_movement(self.product.id, self.warehouse.id, "purchase_receive", 10)
        second = MovementService.create_movement(self.product.id, self.warehouse.id, "purchase_receive", 10)
        prefix = f"SM-{date_stamp()}-"
        self.assertEqual(first.reference_number, f"{prefix}0001")
        self.assertEqual(second.reference_number, f"{prefix}0002")

    def test_auto_approval_boundary(self):
        below = MovementService.create_movement(
            self.product.id, self.warehouse.id, "adjustment_increase", 1, unit_cost="99.99", actor=self.clerk
        )
        at_limit = MovementService.create_movement(
            self.product.id, self.warehouse.id, "adjustment_increase", 1, unit_cost="100.00"
        )

        self.assertEqual(below.status, MovementStatus.APPLIED)
        self.assertEqual(below.approved_by, self.clerk)
        self.assertEqual(at_limit.status, MovementStatus.PENDING)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 101)

    def test_small_decrease_adjustment_auto_applies(self):
        movement = MovementService.create_movement(
            self.product.id, self.warehouse.id, "adjustment_decrease", -2, unit_cost="10"
        )
        self.assertEqual(movement.status, MovementStatus.APPLIED)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 98)

    def test_only_adjustment_types_auto_approve(self):
        movement = MovementService.create_movement(
            self.product.id, self.warehouse.id, "return_customer", 1, unit_cost="1"
        )
        self.assertEqual(movement.status, MovementStatus.PENDING)

    def test_rejection_is_terminal_and_has_no_inventory_effect(self):
        movement = MovementService.create_movement(
            self.product.id, self.warehouse.id, "damage_write_off", -5, notes="crate dropped"
        )
        movement = MovementService.reject_movement(movement.id, "photos missing", self.manager)

        self.assertEqual(movement.status, MovementStatus.REJECTED)
        self.assertEqual(movement.notes, "crate dropped\n\nRejected: photos missing")
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 100)

        with self.assertRaises(InvalidStateError) as ctx:
            MovementService.approve_movement(movement.id, self.manager)
        self.assertEqual(ctx.exception.current_state, MovementStatus.REJECTED)

    def test_applied_movement_cannot_be_approved_or_rejected_again(self):
        movement = MovementService.create_movement(self.product.id, self.warehouse.id, "transfer_in", 5)
        MovementService.approve_movement(movement.id, self.manager)

        with self.assertRaisesMessage(InvalidStateError, "cannot be approved"):
            MovementService.approve_movement(movement.id, self.manager)
        with self.assertRaises(InvalidStateError):
            MovementService.reject_movement(movement.id, "too late")
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 105)

    def test_insufficient_inventory_at_creation(self):
        with self.assertRaises(InsufficientInventoryError):
            MovementService.create_movement(self.product.id, self.warehouse.id, "sale_fulfill", -101)
        self.assertFalse(StockMovement.objects.exists())

    def test_approval_rechecks_current_inventory(self):
        movement = MovementService.create_movement(self.product.id, self.warehouse.id, "sale_fulfill", -80)
        InventoryService.reserve(self.stock.id, 30)

        with self.assertRaises(NegativeInventoryError):
            MovementService.approve_movement(movement.id, self.manager)

        movement.refresh_from_db()
        self.assertEqual(movement.status, MovementStatus.PENDING)
        self.assertIsNone(movement.approved_by)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 100)

    def test_validation(self):
        with self.assertRaises(InvalidChoiceError):
            MovementService.create_movement(self.product.id, self.warehouse.id, "teleport", 1)
        with self.assertRaises(InvalidQuantityError):
            MovementService.create_movement(self.product.id, self.warehouse.id, "purchase_receive", 0)
        with self.assertRaises(InvalidQuantityError):
            MovementService.create_movement(self.product.id, self.warehouse.id, "purchase_receive", -3)
        with self.assertRaises(InvalidQuantityError):
            MovementService.create_movement(self.product.id, self.warehouse.id, "sale_fulfill", 3)
        other = Warehouse.objects.create(name="Empty", code="WH-0")
        with self.assertRaises(NotFoundError):
            MovementService.create_movement(self.product.id, other.id, "purchase_receive", 3)
        self.assertFalse(StockMovement.objects.exists())

    def test_non_finite_unit_cost_is_rejected(self):
        for value in ("NaN", "Infinity", "-Infinity"):
            with self.assertRaises(InvalidQuantityError):
                MovementService.create_movement(
                    self.product.id, self.warehouse.id, "purchase_receive", 3, unit_cost=value
                )
        self.assertFalse(StockMovement.objects.exists())

    def test_failure_after_inventory_write_rolls_back_approval(self):
        movement = MovementService.create_movement(self.product.id, self.warehouse.id, "sale_fulfill", -30)
        original_save = StockMovement.save

        def fail_on_applied(instance, *args, **kwargs):
            if instance.status == MovementStatus.APPLIED:
                raise RuntimeError("write failed")
            return original_save(instance, *args, **kwargs)

        with patch.object(StockMovement, "save", autospec=True, side_effect=fail_on_applied):
            with self.assertLogs("apps.utils.resilience", level="ERROR"):
                with self.assertRaises(RuntimeError):
                    MovementService.approve_movement(movement.id, self.manager)

        movement.refresh_from_db()
        self.assertEqual(movement.status, MovementStatus.PENDING)
        self.assertIsNone(movement.approved_by)
        self.assertIsNone(movement.approved_at)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity_on_hand, 100)
        self.assertEqual(self.stock.quantity_available, 100)
        self.assertFalse(self.stock.ledger_entries.filter(reference=movement.reference_number).exists())

    def test_queries_and_analytics(self):
        MovementService.create_movement(self.product.id, self.warehouse.id, "purchase_receive", 10)
        MovementService.create_movement(self.product.id, self.warehouse.id, "adjustment_increase", 1, unit_cost="1")

        self.assertEqual(MovementService.pending_movements().count(), 1)
        self.assertEqual(MovementService.movements_for_product(self.product.id).count(), 2)
        self.assertEqual(MovementService.movements_for_warehouse(self.warehouse.id).count(), 2)
        self.assertEqual(len(MovementService.recent_movements(1)), 1)

        analytics = MovementService.movement_analytics()
        self.assertEqual(analytics["pending_approval"], 1)
        self.assertEqual(analytics["today_movements"], 2)
        self.assertEqual(analytics["month_movements"], 2)


class MovementAPITests(MovementFixtureMixin, APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.make_fixtures()

    def _create(self, **overrides):
        payload = {
            "product_id": str(self.product.id),
            "warehouse_id": self.warehouse.id,
            "movement_type": "sale_fulfill",
            "quantity_moved": -30,
        }
        payload.update(overrides)
        return self.client.post(reverse("stock-movement-list"), payload, format="json")

    def test_clerk_requests_manager_approves(self):
        self.client.force_authenticate(self.clerk)
        resp = self._create()
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["status"], "pending")
        self.assertEqual(resp.data["created_by"], "clerk")
        movement_id = resp.data["id"]

        resp = self.client.post(reverse("stock-movement-approve", kwargs={"pk": movement_id}))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.manager)
        resp = self.client.post(reverse("stock-movement-approve", kwargs={"pk": movement_id}))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["status"], "applied")

        resp = self.client.post(reverse("stock-movement-approve", kwargs={"pk": movement_id}))
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["current_state"], "applied")

    def test_reject_requires_reason(self):
        self.client.force_authenticate(self.clerk)
        movement_id = self._create().data["id"]

        self.client.force_authenticate(self.manager)
        resp = self.client.post(reverse("stock-movement-reject", kwargs={"pk": movement_id}), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

        resp = self.client.post(
            reverse("stock-movement-reject", kwargs={"pk": movement_id}), {"reason": "duplicate"}, format="json"
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["status"], "rejected")

    def test_filter_and_analytics(self):
        self.client.force_authenticate(self.clerk)
        self._create()
        self._create(movement_type="purchase_receive", quantity_moved=5)

        resp = self.client.get(reverse("stock-movement-list"), {"movement_type": "purchase_receive"})
        self.assertEqual(resp.data["count"], 1)

        resp = self.client.get(reverse("stock-movement-analytics"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["pending_approval"], 2)

    def test_insufficient_inventory_response(self):
        self.client.force_authenticate(self.clerk)
        resp = self._create(quantity_moved=-500)
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "insufficient_inventory")
