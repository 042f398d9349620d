# apps/utils/tests.py
import json
import logging
from decimal import Decimal
from datetime import date
from unittest import mock

from django.dispatch import Signal
from django.test import TestCase, SimpleTestCase
from django.urls import reverse

from .exceptions import ValidationError
from .logging import JSONFormatter
from .uow import UnitOfWork, dispatch_robust
from .utils import money
from .validators import validate_phone, validate_lat_lng, parse_iso_date


class ValidatorTests(SimpleTestCase):
    def test_phone_validator(self):
        self.assertEqual(validate_phone("+919876543210"), "+919876543210")
        with self.assertRaises(ValidationError):
            validate_phone("123")

    def test_lat_lng_validator(self):
        validate_lat_lng(12.9716, 77.5946)

        with self.assertRaises(ValidationError):
            validate_lat_lng(91.0, 77.5946)

        with self.assertRaises(ValidationError):
            validate_lat_lng(12.9716, 181.0)

        with self.assertRaises(ValidationError):
            validate_lat_lng("north", 77.5946)

    def test_parse_iso_date(self):
        self.assertEqual(parse_iso_date("2026-03-04"), date(2026, 3, 4))
        self.assertIsNone(parse_iso_date("  "))
        with self.assertRaises(ValidationError):
            parse_iso_date("04/03/2026")

    def test_money_rounds_half_up(self):
        self.assertEqual(money("10.005"), Decimal("10.01"))
        self.assertEqual(money(Decimal("7")), Decimal("7.00"))

    def test_money_rejects_non_finite_and_garbage(self):
        for bad in ("NaN", "Infinity", "abc", None, ""):
            with self.assertRaises(ValidationError):
                money(bad)


class JSONFormatterTests(SimpleTestCase):
    def test_scrubs_sensitive_keys_and_keeps_context(self):
        record = logging.LogRecord("apps.test", logging.INFO, __file__, 1, {"token": "abc", "ok": 1}, None, None)
        record.order_id = 42
        payload = json.loads(JSONFormatter().format(record))

        self.assertIn("REDACTED", payload["msg"])
        self.assertNotIn("abc", payload["msg"])
        self.assertEqual(payload["order_id"], 42)


class UnitOfWorkTests(TestCase):
    def setUp(self):
        self.signal = Signal()
        self.received = []

        def ok_receiver(sender, **kwargs):
            self.received.append(kwargs["value"])

        def broken_receiver(sender, **kwargs):
            raise RuntimeError("push provider down")

        self.ok_receiver = ok_receiver
        self.broken_receiver = broken_receiver
        self.signal.connect(self.ok_receiver, weak=False)
        self.signal.connect(self.broken_receiver, weak=False)

    def test_events_fire_after_commit_and_failures_are_swallowed(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with UnitOfWork() as uow:
                uow.emit(self.signal, sender=None, value=1)
                self.assertEqual(self.received, [])

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(self.received, [1])

    def test_events_dropped_on_rollback(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(ValueError):
                with UnitOfWork() as uow:
                    uow.emit(self.signal, sender=None, value=2)
                    raise ValueError("boom")

        self.assertEqual(callbacks, [])
        self.assertEqual(self.received, [])

    def test_emit_outside_unit_is_rejected(self):
        with self.assertRaises(RuntimeError):
            UnitOfWork().emit(self.signal, sender=None, value=3)

    def test_ensure_joins_open_unit(self):
        with UnitOfWork() as outer:
            with UnitOfWork.ensure(outer) as joined:
                self.assertIs(joined, outer)
        with UnitOfWork.ensure(None) as fresh:
            self.assertTrue(fresh.active)

    def test_dispatch_robust_reports_failures(self):
        results = dispatch_robust(self.signal, sender=None, value=4)
        self.assertEqual(len(results), 2)
        self.assertTrue(any(isinstance(r, RuntimeError) for _, r in results))


class HealthAndConfigTests(TestCase):
    def test_health_ok(self):
        resp = self.client.get(reverse("health-check"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["components"]["db"], "ok")

    def test_broker_down_is_degraded_not_failed(self):
        with mock.patch("apps.utils.health.celery_app.connection_for_write", side_effect=OSError("refused")):
            resp = self.client.get(reverse("health-check"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "degraded")
        self.assertEqual(resp.json()["components"]["broker"], "error")

    def test_global_config_exposes_pricing(self):
        resp = self.client.get(reverse("global-config"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["tax_rate"], "0.05")
        self.assertEqual(resp.data["delivery_fee"], "20.00")
        self.assertEqual(resp.data["low_stock_threshold"], 10)

    def test_server_info(self):
        resp = self.client.get(reverse("server-info"))
        self.assertEqual(resp.data["app_name"], "DropDesk")
