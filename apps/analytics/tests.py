# apps/analytics/tests.py
from datetime import date, timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.catalog.services import CatalogService
from apps.orders.models import Order
from apps.orders.services import OrderLifecycleService
from apps.utils.exceptions import ValidationError
from .services import dashboard_stats, date_range_label

User = get_user_model()


class DateRangeLabelTests(TestCase):
    def test_labels(self):
        self.assertEqual(date_range_label(None, None), "All Time")
        self.assertEqual(date_range_label(date(2026, 3, 4), None), "All Time")
        self.assertEqual(date_range_label(date(2026, 3, 4), date(2026, 3, 4)), "Mar 4, 2026")
        self.assertEqual(date_range_label(date(2026, 3, 4), date(2026, 3, 9)), "Mar 4 - Mar 9, 2026")
        self.assertEqual(
            date_range_label(date(2025, 12, 30), date(2026, 1, 2)),
            "Dec 30, 2025 - Jan 2, 2026",
        )


class DashboardStatsTests(TestCase):
    def setUp(self):
        self.p = CatalogService.create_product(name="Water 1L", category="water", rate="15.00", stock_quantity=50)
        CatalogService.create_product(name="Soda", category="beverage", rate="25.00", stock_quantity=5)
        self.a = self._create("100.00")
        self.b = self._create("50.50")
        self.old = self._create("30.00")
        Order.objects.filter(pk=self.b.pk).update(status=Order.Status.DELIVERED)
        Order.objects.filter(pk=self.old.pk).update(created_at=timezone.now() - timedelta(days=10))

    def _create(self, total):
        return OrderLifecycleService.create(
            buyer_id=3,
            buyer_name="Ravi",
            items=[{"product_id": self.p.id, "quantity": 1}],
            total=total,
        )

    def test_all_time(self):
        stats = dashboard_stats()
        self.assertEqual(stats["total_orders"], 3)
        self.assertEqual(stats["pending_orders"], 2)
        self.assertEqual(stats["delivered_orders"], 1)
        self.assertEqual(stats["total_revenue"], Decimal("180.50"))
        self.assertEqual(stats["products_count"], 2)
        self.assertEqual(stats["date_range_label"], "All Time")
        self.assertEqual(stats["today_orders"], 2)

    def test_range_including_today(self):
        today = timezone.localdate()
        stats = dashboard_stats((today - timedelta(days=2)).isoformat(), today.isoformat())
        self.assertEqual(stats["total_orders"], 2)
        self.assertEqual(stats["total_revenue"], Decimal("150.50"))
        self.assertEqual(stats["today_orders"], 2)

    def test_range_in_the_past_has_no_today_orders(self):
        day = timezone.localdate() - timedelta(days=10)
        stats = dashboard_stats(day, day)
        self.assertEqual(stats["total_orders"], 1)
        self.assertEqual(stats["pending_orders"], 1)
        self.assertEqual(stats["today_orders"], 0)
        self.assertEqual(stats["date_range_label"], date_range_label(day, day))

    def test_single_bound_is_all_time_without_today_count(self):
        stats = dashboard_stats(from_date=timezone.localdate().isoformat())
        self.assertEqual(stats["date_range_label"], "All Time")
        self.assertEqual(stats["total_orders"], 3)
        self.assertEqual(stats["today_orders"], 0)

        stats = dashboard_stats(to_date=timezone.localdate().isoformat())
        self.assertEqual(stats["total_orders"], 3)
        self.assertEqual(stats["today_orders"], 0)

    def test_empty_range(self):
        stats = dashboard_stats("2001-01-01", "2001-01-31")
        self.assertEqual(stats["total_orders"], 0)
        self.assertEqual(stats["total_revenue"], Decimal("0.00"))
        self.assertEqual(stats["products_count"], 2)

    def test_invalid_dates(self):
        with self.assertRaises(ValidationError):
            dashboard_stats("2026-03-09", "2026-03-04")
        with self.assertRaises(ValidationError):
            dashboard_stats("yesterday", "2026-03-04")


class DashboardAPITests(APITestCase):
    def setUp(self):
        self.staff = User.objects.create_user(username="seller", password="testpass", is_staff=True)
        self.buyer = User.objects.create_user(username="buyer", password="testpass")
        self.url = reverse("analytics-dashboard")

    def test_staff_only(self):
        self.client.force_authenticate(self.buyer)
        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_403_FORBIDDEN)

    def test_dashboard(self):
        self.client.force_authenticate(self.staff)
        resp = self.client.get(self.url, {"from_date": "2026-03-04", "to_date": "2026-03-09"})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["date_range_label"], "Mar 4 - Mar 9, 2026")
        self.assertEqual(resp.data["total_orders"], 0)

    def test_bad_range_is_400(self):
        self.client.force_authenticate(self.staff)
        resp = self.client.get(self.url, {"from_date": "2026-03-09", "to_date": "2026-03-04"})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
