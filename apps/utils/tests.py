# apps/utils/tests.py
import json
import logging
import re
from types import SimpleNamespace

from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status

from apps.catalog.models import Product
from apps.warehouse.models import Warehouse
from apps.transfers.models import StockTransfer
from .exceptions import (
    InsufficientAvailabilityError,
    InvalidStateError,
    NotFoundError,
    ReferenceGenerationError,
    custom_exception_handler,
)
from .logging import JSONFormatter
from .resilience import logged_operation
from .utils import daily_sequence_reference, date_stamp, random_reference, user_or_none


class ReferenceNumberTests(TestCase):
    def setUp(self):
        self.wh1 = Warehouse.objects.create(name="A", code="A")
        self.wh2 = Warehouse.objects.create(name="B", code="B")
        self.product = Product.objects.create(sku_code="SKU-1", name="Thing")
        self.prefix = f"ST-{date_stamp()}-"

    def _transfer(self, reference):
        return StockTransfer.objects.create(
            reference_number=reference,
            from_warehouse=self.wh1,
            to_warehouse=self.wh2,
            product=self.product,
            quantity_transferred=1,
        )

    def test_random_reference_format(self):
        self.assertTrue(re.match(r"^ADJ-\d{8}-[0-9A-F]{6}$", random_reference("ADJ")))

    def test_daily_sequence_starts_at_one(self):
        self.assertEqual(daily_sequence_reference(StockTransfer, "ST"), f"{self.prefix}0001")

    def test_daily_sequence_skips_taken_numbers(self):
        self._transfer(f"{self.prefix}0002")
        self.assertEqual(daily_sequence_reference(StockTransfer, "ST"), f"{self.prefix}0003")

    @override_settings(REFERENCE_NUMBER_MAX_ATTEMPTS=1)
    def test_daily_sequence_gives_up(self):
        self._transfer(f"{self.prefix}0002")
        with self.assertRaises(ReferenceGenerationError):
            daily_sequence_reference(StockTransfer, "ST")


class ExceptionHandlerTests(TestCase):
    def test_domain_errors_map_to_status_and_body(self):
        resp = custom_exception_handler(InvalidStateError("nope", current_state="applied"), {})
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data, {"error": "nope", "code": "invalid_state", "current_state": "applied"})

        resp = custom_exception_handler(NotFoundError("missing"), {})
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

        resp = custom_exception_handler(InsufficientAvailabilityError("short", available=2, requested=5), {})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["available"], 2)

    def test_unexpected_errors_become_500(self):
        with self.assertLogs("apps.utils.exceptions", level="ERROR"):
            resp = custom_exception_handler(ValueError("boom"), {})
        self.assertEqual(resp.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


class LoggedOperationTests(TestCase):
    def test_unexpected_failure_is_logged_and_reraised(self):
        @logged_operation("demo.fail")
        def fail(x, flag=None):
            raise ValueError("bad")

        with self.assertLogs("apps.utils.resilience", level="ERROR") as logs:
            with self.assertRaises(ValueError):
                fail(1, flag=True)
        self.assertEqual(logs.records[0].operation, "demo.fail")
        self.assertEqual(logs.records[0].call_kwargs, {"flag": "True"})
        self.assertGreaterEqual(logs.records[0].duration_ms, 0)

    def test_domain_error_passes_through_unlogged(self):
        @logged_operation("demo.domain")
        def fail():
            raise NotFoundError("gone")

        with self.assertNoLogs("apps.utils.resilience", level="ERROR"):
            with self.assertRaises(NotFoundError):
                fail()


class JSONFormatterTests(TestCase):
    def test_context_fields_and_scrubbing(self):
        record = logging.makeLogRecord({
            "msg": "Stock Transfer approved",
            "levelname": "INFO",
            "name": "apps.transfers.services",
            "reference_number": "ST-20240101-0001",
            "call_kwargs": {"password": "hunter2", "quantity": "3"},
        })
        payload = json.loads(JSONFormatter().format(record))
        self.assertEqual(payload["msg"], "Stock Transfer approved")
        self.assertEqual(payload["reference_number"], "ST-20240101-0001")
        self.assertEqual(payload["call_kwargs"]["password"], "***REDACTED***")
        self.assertNotIn("transfer_id", payload)


class HelperTests(TestCase):
    def test_user_or_none(self):
        self.assertIsNone(user_or_none(None))
        self.assertIsNone(user_or_none(SimpleNamespace(is_authenticated=False)))
        user = SimpleNamespace(is_authenticated=True)
        self.assertIs(user_or_none(user), user)

    def test_health_and_info_endpoints(self):
        resp = self.client.get(reverse("health-check"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["components"]["db"], "ok")

        resp = self.client.get(reverse("server-info"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["movement_auto_approve_limit"], "100.00")
