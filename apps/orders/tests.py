# apps/orders/tests.py
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase, APIClient

from apps.catalog.services import CatalogService
from apps.inventory.models import StockHistory
from apps.inventory.services import StockLedger
from apps.utils.exceptions import (
    ConflictError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from .billing import BillingReconciler
from .history import status_history
from .models import Order, OrderStatusHistory
from .selectors import filter_orders, orders_for_buyer, today_orders
from .services import OrderLifecycleService, compute_total
from .signals import BILL_UPDATED, order_created, order_status_changed

User = get_user_model()


class OrderFixturesMixin:
    def setUp(self):
        super().setUp()
        self.p = CatalogService.create_product(name="Water 1L", category="water", rate="15.00", stock_quantity=10)
        self.q = CatalogService.create_product(name="Cola", category="beverage", rate="30.00", stock_quantity=5)

    def _stock(self, product):
        product.refresh_from_db()
        return product.stock_quantity

    def _create(self, p_qty=2, q_qty=1, total="60.00", **kwargs):
        data = {
            "buyer_id": 7,
            "buyer_name": "Asha",
            "buyer_phone": "+919876543210",
            "buyer_address": "12 Lake Road",
            "items": [
                {"product_id": self.p.id, "quantity": p_qty},
                {"product_id": self.q.id, "quantity": q_qty},
            ],
            "total": total,
        }
        data.update(kwargs)
        return OrderLifecycleService.create(**data)

    def _on_the_way(self, seconds=125):
        order = self._create()
        OrderLifecycleService.confirm(order.id, "seller")
        return OrderLifecycleService.set_on_the_way(order.id, seconds, actor="seller")


class BillingReconcilerTests(TestCase):
    def test_payment_status(self):
        self.assertEqual(BillingReconciler.payment_status("100.00", "100"), "PAID")
        self.assertEqual(BillingReconciler.payment_status("100.00", "0"), "UNPAID")
        self.assertEqual(BillingReconciler.payment_status("100.00", "99.99"), "PARTIALLY_PAID")

    def test_rejects_amount_above_total(self):
        with self.assertRaises(ValidationError):
            BillingReconciler.validate(Decimal("100.00"), Decimal("100.01"))
        with self.assertRaises(ValidationError):
            BillingReconciler.validate(Decimal("100.00"), None)

    def test_non_numeric_amounts_are_validation_errors(self):
        with self.assertRaises(ValidationError):
            BillingReconciler.validate(Decimal("100.00"), "NaN")
        with self.assertRaises(ValidationError):
            BillingReconciler.payment_status("abc", "10.00")

    def test_compute_total_rounds_half_up(self):
        # 45 + 2.25 tax + 20 delivery
        self.assertEqual(compute_total(Decimal("45.00")), Decimal("67.25"))
        # 10.10 * 1.05 = 10.605 -> 10.61, + 20
        self.assertEqual(compute_total(Decimal("10.10")), Decimal("30.61"))


class OrderLifecycleTests(OrderFixturesMixin, TestCase):

    # --- create -------------------------------------------------------

    def test_create_leaves_stock_untouched(self):
        order = self._create()

        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.total, Decimal("60.00"))
        self.assertEqual(self._stock(self.p), 10)
        self.assertEqual(self._stock(self.q), 5)
        self.assertEqual(order.delivery_address, "12 Lake Road")

        items = list(order.items.all())
        self.assertEqual([(i.item_name, i.rate, i.quantity) for i in items], [
            ("Water 1L", Decimal("15.00"), 2),
            ("Cola", Decimal("30.00"), 1),
        ])
        self.assertEqual(items[0].subtotal, Decimal("30.00"))

        history = list(status_history(order.id))
        self.assertEqual(len(history), 1)
        self.assertIsNone(history[0].old_status)
        self.assertEqual(history[0].new_status, "pending")
        self.assertEqual(history[0].changed_by, "system")
        self.assertEqual(history[0].notes, "Order created")

    def test_create_keeps_coordinates_only_as_a_pair(self):
        order = self._create(latitude=12.97, longitude=None)
        self.assertIsNone(order.latitude)

        order = self._create(latitude=12.97, longitude=77.59)
        self.assertEqual(order.longitude, 77.59)

        with self.assertRaises(ValidationError):
            self._create(latitude=91, longitude=0)

    def test_create_validation_writes_nothing(self):
        with self.assertRaises(ValidationError):
            self._create(items=[])
        with self.assertRaises(ValidationError):
            self._create(total=None)
        with self.assertRaises(NotFoundError):
            self._create(items=[{"product_id": 999999, "quantity": 1}])
        self.assertFalse(Order.objects.exists())

    def test_create_rejects_non_numeric_amounts(self):
        for bad in ("NaN", "abc", "Infinity"):
            with self.assertRaises(ValidationError):
                self._create(total=bad)
            with self.assertRaises(ValidationError):
                self._create(items=[{"product_id": self.p.id, "quantity": 1, "rate": bad}])
        self.assertFalse(Order.objects.exists())

    def test_snapshot_is_not_rederived_from_catalog(self):
        order = self._create()
        CatalogService.update_product(self.p.id, rate="99.00", name="Water 1L (new)")

        item = order.items.get(product=self.p)
        self.assertEqual(item.rate, Decimal("15.00"))
        self.assertEqual(item.item_name, "Water 1L")

    # --- confirm ------------------------------------------------------

    def test_confirm_deducts_every_item(self):
        order = self._create()
        order = OrderLifecycleService.confirm(order.id, "seller")

        self.assertEqual(order.status, Order.Status.CONFIRMED)
        self.assertEqual(order.confirmed_by, "seller")
        self.assertEqual(self._stock(self.p), 8)
        self.assertEqual(self._stock(self.q), 4)

        entries = StockHistory.objects.filter(order=order)
        self.assertEqual(entries.count(), 2)
        self.assertTrue(all(e.change_type == "order_confirmed" for e in entries))
        self.assertEqual(
            entries.get(product=self.p).notes, f"Stock deducted for order #{order.id}"
        )

    def test_confirm_is_all_or_nothing(self):
        order = self._create(p_qty=2, q_qty=6)

        with self.assertRaises(InsufficientStockError):
            OrderLifecycleService.confirm(order.id, "seller")

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(self._stock(self.p), 10)
        self.assertEqual(self._stock(self.q), 5)
        self.assertFalse(StockHistory.objects.filter(order=order).exists())
        self.assertEqual(status_history(order.id).count(), 1)

    def test_confirm_twice_is_rejected(self):
        order = self._create()
        OrderLifecycleService.confirm(order.id, "seller")
        with self.assertRaises(InvalidStateError):
            OrderLifecycleService.confirm(order.id, "seller")
        self.assertEqual(self._stock(self.p), 8)

    def test_unknown_order(self):
        with self.assertRaises(NotFoundError):
            OrderLifecycleService.confirm(424242, "seller")

    # --- cancel -------------------------------------------------------

    def test_cancel_confirmed_order_restores_stock(self):
        order = self._create()
        OrderLifecycleService.confirm(order.id, "seller")
        order = OrderLifecycleService.cancel(order.id, "seller", "buyer request")

        self.assertEqual(order.status, Order.Status.CANCELED)
        self.assertEqual(self._stock(self.p), 10)
        self.assertEqual(self._stock(self.q), 5)
        self.assertEqual(
            StockHistory.objects.filter(order=order, change_type="order_canceled").count(), 2
        )
        self.assertEqual(status_history(order.id).last().notes, "Order canceled: buyer request")

        with self.assertRaises(InvalidStateError):
            OrderLifecycleService.confirm(order.id, "seller")
        with self.assertRaises(InvalidStateError):
            OrderLifecycleService.mark_processing(order.id, tracking_number="TRK1", actor="seller")
        with self.assertRaises(InvalidStateError):
            OrderLifecycleService.cancel(order.id, "seller")

    def test_cancel_pending_order_moves_no_stock(self):
        order = self._create()
        order = OrderLifecycleService.cancel(order.id, "seller")

        self.assertFalse(StockHistory.objects.exists())
        self.assertEqual(status_history(order.id).last().notes, "Order canceled: No reason provided")

    def test_cancel_processing_order_restores_stock(self):
        order = self._on_the_way()
        OrderLifecycleService.cancel(order.id, "seller", "rain")
        self.assertEqual(self._stock(self.p), 10)

    def test_delivered_order_cannot_be_canceled(self):
        order = self._on_the_way()
        OrderLifecycleService.update_bill(order.id, order.total, actor="seller")
        OrderLifecycleService.mark_delivered(order.id, "rider")

        with self.assertRaises(InvalidStateError):
            OrderLifecycleService.cancel(order.id, "seller")
        self.assertEqual(self._stock(self.p), 8)

    # --- processing / on the way / bill / deliver ---------------------

    def test_mark_processing_requires_confirmed(self):
        order = self._create()
        with self.assertRaises(InvalidStateError):
            OrderLifecycleService.mark_processing(order.id, tracking_number="TRK1", actor="seller")

        OrderLifecycleService.confirm(order.id, "seller")
        order = OrderLifecycleService.mark_processing(
            order.id, tracking_number="TRK1", delivery_partner="Dunzo", actor="seller"
        )
        self.assertEqual(order.status, Order.Status.PROCESSING)
        self.assertEqual(order.tracking_number, "TRK1")
        self.assertEqual(status_history(order.id).last().notes, "Order in processing with tracking: TRK1")

    def test_full_delivery_flow(self):
        order = self._on_the_way(125)

        self.assertEqual(order.status, Order.Status.PROCESSING)
        self.assertEqual(order.delivery_time_minutes, 3)
        self.assertEqual(order.delivery_total_seconds, 125)
        self.assertIsNotNone(order.delivery_start_timestamp)

        order = OrderLifecycleService.update_bill(order.id, order.total, actor="seller")
        self.assertEqual(order.payment_status, "PAID")
        self.assertEqual(order.status, Order.Status.PROCESSING)

        delivered = OrderLifecycleService.mark_delivered(order.id, "rider")
        self.assertEqual(delivered.status, Order.Status.DELIVERED)
        self.assertEqual(delivered.delivered_by, "rider")

        history_count = status_history(order.id).count()
        stock_count = StockHistory.objects.count()

        again = OrderLifecycleService.mark_delivered(order.id, "rider")
        self.assertEqual(again.pk, delivered.pk)
        self.assertEqual(again.version, delivered.version)
        self.assertEqual(again.status, Order.Status.DELIVERED)
        self.assertEqual(status_history(order.id).count(), history_count)
        self.assertEqual(StockHistory.objects.count(), stock_count)

    def test_status_path_is_recorded(self):
        order = self._on_the_way()
        OrderLifecycleService.update_bill(order.id, "10.00", actor="seller")
        OrderLifecycleService.mark_delivered(order.id, "rider")

        path = [(h.old_status, h.new_status) for h in status_history(order.id)]
        self.assertEqual(path, [
            (None, "pending"),
            ("pending", "confirmed"),
            ("confirmed", "processing"),
            ("processing", "processing"),
            ("processing", "delivered"),
        ])

    def test_on_the_way_minutes_have_a_floor(self):
        order = self._on_the_way(30)
        self.assertEqual(order.delivery_time_minutes, 1)

    def test_on_the_way_rejects_non_positive_seconds(self):
        order = self._create()
        OrderLifecycleService.confirm(order.id, "seller")
        for seconds in (0, -5, None):
            with self.assertRaises(ValidationError):
                OrderLifecycleService.set_on_the_way(order.id, seconds, actor="seller")

    def test_bill_above_total_changes_nothing(self):
        order = self._on_the_way()
        version = order.version

        with self.assertRaises(ValidationError):
            OrderLifecycleService.update_bill(order.id, order.total + Decimal("0.01"), actor="seller")

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.PROCESSING)
        self.assertIsNone(order.payment_status)
        self.assertIsNone(order.final_bill_amount)
        self.assertEqual(order.version, version)

    def test_partial_bill(self):
        order = self._on_the_way()
        order = OrderLifecycleService.update_bill(order.id, "45.50", notes="one bottle returned", actor="")

        self.assertEqual(order.payment_status, "PARTIALLY_PAID")
        self.assertEqual(order.billed_by, "seller")
        self.assertEqual(
            status_history(order.id).last().notes,
            "Bill updated: ₹45.50 (Original: ₹60.00). Payment Status: PARTIALLY_PAID. Notes: one bottle returned",
        )

    def test_bill_must_be_positive(self):
        order = self._on_the_way()
        with self.assertRaises(ValidationError):
            OrderLifecycleService.update_bill(order.id, "0", actor="seller")

    def test_bill_rejects_non_numeric_amounts(self):
        order = self._on_the_way()
        for bad in ("NaN", "abc", "-Infinity"):
            with self.assertRaises(ValidationError):
                OrderLifecycleService.update_bill(order.id, bad, actor="seller")
        order.refresh_from_db()
        self.assertIsNone(order.final_bill_amount)

    def test_bill_only_while_processing(self):
        order = self._create()
        OrderLifecycleService.confirm(order.id, "seller")
        with self.assertRaises(InvalidStateError):
            OrderLifecycleService.update_bill(order.id, "10.00", actor="seller")

    def test_delivery_requires_bill(self):
        order = self._on_the_way()
        with self.assertRaises(ValidationError):
            OrderLifecycleService.mark_delivered(order.id, "rider")

    def test_delivery_requires_processing(self):
        order = self._create()
        OrderLifecycleService.confirm(order.id, "seller")
        with self.assertRaises(InvalidStateError):
            OrderLifecycleService.mark_delivered(order.id, "rider")

    # --- edit ---------------------------------------------------------

    def test_edit_pending_recomputes_total(self):
        order = self._create()
        order = OrderLifecycleService.edit(order.id, [{"product_id": self.p.id, "quantity": 3}], actor="seller")

        self.assertEqual(order.total, Decimal("67.25"))
        self.assertEqual(order.items.count(), 1)
        self.assertFalse(StockHistory.objects.exists())

    def test_edit_confirmed_moves_stock_to_new_items(self):
        order = self._create()
        OrderLifecycleService.confirm(order.id, "seller")

        order = OrderLifecycleService.edit(order.id, [{"product_id": self.p.id, "quantity": 1}], actor="seller")

        self.assertEqual(order.status, Order.Status.CONFIRMED)
        self.assertEqual(order.total, Decimal("35.75"))
        self.assertEqual(self._stock(self.p), 9)
        self.assertEqual(self._stock(self.q), 5)

    def test_edit_confirmed_with_insufficient_stock_rolls_back(self):
        order = self._create()
        OrderLifecycleService.confirm(order.id, "seller")

        with self.assertRaises(InsufficientStockError):
            OrderLifecycleService.edit(order.id, [{"product_id": self.p.id, "quantity": 11}], actor="seller")

        order.refresh_from_db()
        self.assertEqual(self._stock(self.p), 8)
        self.assertEqual(self._stock(self.q), 4)
        self.assertEqual(order.total, Decimal("60.00"))
        self.assertEqual(order.items.count(), 2)

    def test_edit_updates_contact_details(self):
        order = self._create()
        order = OrderLifecycleService.edit(
            order.id,
            [{"product_id": self.q.id, "quantity": 1}],
            delivery_address="   ",
            buyer_phone="+919999999999",
        )
        self.assertIsNone(order.delivery_address)
        self.assertEqual(order.buyer_phone, "+919999999999")

    def test_edit_validation(self):
        order = self._create()
        with self.assertRaises(ValidationError):
            OrderLifecycleService.edit(order.id, [], actor="seller")
        with self.assertRaises(ValidationError):
            OrderLifecycleService.edit(order.id, [{"product_id": self.p.id, "quantity": 0}], actor="seller")
        with self.assertRaises(ValidationError):
            OrderLifecycleService.edit(order.id, [{"quantity": 1}], actor="seller")

    def test_edit_rejected_outside_pending_or_confirmed(self):
        order = self._on_the_way()
        with self.assertRaises(InvalidStateError) as ctx:
            OrderLifecycleService.edit(order.id, [{"product_id": self.p.id, "quantity": 1}])
        self.assertEqual(ctx.exception.message, "Only pending or confirmed orders can be edited")

        canceled = self._create()
        OrderLifecycleService.cancel(canceled.id, "seller")
        with self.assertRaises(InvalidStateError) as ctx:
            OrderLifecycleService.edit(canceled.id, [{"product_id": self.p.id, "quantity": 1}])
        self.assertEqual(ctx.exception.message, "Delivered or canceled orders cannot be edited")

    # --- force --------------------------------------------------------

    def test_force_set_status_skips_rules_and_stock(self):
        order = self._create()
        order = OrderLifecycleService.force_set_status(order.id, "delivered")

        self.assertEqual(order.status, Order.Status.DELIVERED)
        self.assertFalse(StockHistory.objects.exists())
        last = status_history(order.id).last()
        self.assertEqual((last.old_status, last.new_status, last.changed_by), ("pending", "delivered", "system"))
        self.assertEqual(last.notes, "Status updated")

    def test_force_set_status_rejects_unknown_status(self):
        order = self._create()
        with self.assertRaises(ValidationError):
            OrderLifecycleService.force_set_status(order.id, "lost")

    # --- concurrency --------------------------------------------------

    def test_stale_confirm_conflicts_and_deducts_once(self):
        order = self._create()
        stale = Order.objects.get(pk=order.pk)

        OrderLifecycleService.confirm(order.id, "seller")

        # Simulate a second caller that read the order before the first committed
        with mock.patch.object(OrderLifecycleService, "_lock_order", return_value=stale):
            with self.assertRaises(ConflictError):
                OrderLifecycleService.confirm(order.id, "seller")

        self.assertEqual(self._stock(self.p), 8)
        self.assertEqual(self._stock(self.q), 4)
        self.assertEqual(StockHistory.objects.filter(order=order).count(), 2)

    def test_expected_version(self):
        order = self._create()
        with self.assertRaises(ConflictError):
            OrderLifecycleService.confirm(order.id, "seller", expected_version=order.version + 1)
        self.assertEqual(self._stock(self.p), 10)

        confirmed = OrderLifecycleService.confirm(order.id, "seller", expected_version=order.version)
        self.assertEqual(confirmed.version, order.version + 1)

    def test_stock_never_negative(self):
        order = self._create(p_qty=10, q_qty=5)
        OrderLifecycleService.confirm(order.id, "seller")
        StockLedger.manual_adjust(self.p.id, 0, actor="auditor")

        other = self._create(p_qty=1, q_qty=1)
        with self.assertRaises(InsufficientStockError):
            OrderLifecycleService.confirm(other.id, "seller")
        self.assertEqual(self._stock(self.p), 0)

    def test_history_rows_are_append_only(self):
        order = self._create()
        entry = OrderStatusHistory.objects.get(order=order)
        with self.assertRaises(TypeError):
            entry.save()
        with self.assertRaises(TypeError):
            entry.delete()


class OrderEventTests(OrderFixturesMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.events = []

        def on_change(sender, order, event, old_status, new_status, **kwargs):
            self.events.append((event, old_status, new_status))

        def on_create(sender, order, **kwargs):
            self.events.append(("created", None, order.status))

        order_status_changed.connect(on_change, weak=False, dispatch_uid="test-order-events")
        order_created.connect(on_create, weak=False, dispatch_uid="test-order-created")
        self.addCleanup(order_status_changed.disconnect, dispatch_uid="test-order-events")
        self.addCleanup(order_created.disconnect, dispatch_uid="test-order-created")

    def test_events_fire_after_commit(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            order = self._create()
        self.assertEqual(self.events, [])
        self.assertEqual(len(callbacks), 1)

        for callback in callbacks:
            callback()
        self.assertEqual(self.events, [("created", None, "pending")])

    def test_buyer_events(self):
        order = self._create()
        with self.captureOnCommitCallbacks(execute=True):
            OrderLifecycleService.confirm(order.id, "seller")
        with self.captureOnCommitCallbacks(execute=True):
            OrderLifecycleService.mark_processing(order.id, tracking_number="T", actor="seller")
        with self.captureOnCommitCallbacks(execute=True):
            OrderLifecycleService.update_bill(order.id, "60.00", actor="seller")

        self.assertEqual(self.events, [
            ("confirmed", "pending", "confirmed"),
            (BILL_UPDATED, "processing", "processing"),
        ])

    def test_failed_transition_emits_nothing(self):
        order = self._create(q_qty=6)
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(InsufficientStockError):
                OrderLifecycleService.confirm(order.id, "seller")
        self.assertEqual(callbacks, [])

    def test_forced_status_notifies_selected_targets_only(self):
        order = self._create()
        with self.captureOnCommitCallbacks(execute=True):
            OrderLifecycleService.force_set_status(order.id, "processing")
            OrderLifecycleService.force_set_status(order.id, "processing")
            OrderLifecycleService.force_set_status(order.id, "canceled")
        self.assertEqual(self.events, [("canceled", "processing", "canceled")])

    def test_receiver_failure_does_not_roll_back(self):
        def broken(sender, **kwargs):
            raise RuntimeError("push gateway down")

        order_status_changed.connect(broken, weak=False, dispatch_uid="test-broken")
        self.addCleanup(order_status_changed.disconnect, dispatch_uid="test-broken")

        order = self._create()
        with self.assertLogs("apps.utils.uow", level="ERROR"):
            with self.captureOnCommitCallbacks(execute=True):
                OrderLifecycleService.confirm(order.id, "seller")

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.CONFIRMED)
        self.assertEqual(self._stock(self.p), 8)


class OrderSelectorTests(OrderFixturesMixin, TestCase):
    def setUp(self):
        super().setUp()
        now = timezone.now()
        self.old = self._create()
        self.recent = self._create()
        self.today = self._create(buyer_id=8)
        OrderLifecycleService.confirm(self.recent.id, "seller")
        Order.objects.filter(pk=self.old.pk).update(created_at=now - timedelta(days=40))
        Order.objects.filter(pk=self.recent.pk).update(created_at=now - timedelta(days=3))

    def _ids(self, qs):
        return [o.id for o in qs]

    def test_no_filters_returns_all_newest_first(self):
        self.assertEqual(self._ids(filter_orders()), [self.today.id, self.recent.id, self.old.id])

    def test_status_only(self):
        self.assertEqual(self._ids(filter_orders(status="confirmed")), [self.recent.id])
        self.assertEqual(self._ids(filter_orders(status="PENDING")), [self.today.id, self.old.id])

    def test_from_date_only_runs_through_today(self):
        since = (timezone.localdate() - timedelta(days=5)).isoformat()
        self.assertEqual(self._ids(filter_orders(from_date=since)), [self.today.id, self.recent.id])

    def test_to_date_only_starts_at_floor(self):
        until = (timezone.localdate() - timedelta(days=10)).isoformat()
        self.assertEqual(self._ids(filter_orders(to_date=until)), [self.old.id])

    def test_dates_and_status_combined(self):
        since = (timezone.localdate() - timedelta(days=60)).isoformat()
        until = timezone.localdate().isoformat()
        self.assertEqual(
            self._ids(filter_orders(status="pending", from_date=since, to_date=until)),
            [self.today.id, self.old.id],
        )

    def test_bad_input(self):
        with self.assertRaises(ValidationError):
            filter_orders(status="shipped")
        with self.assertRaises(ValidationError):
            filter_orders(from_date="03/04/2026")
        with self.assertRaises(ValidationError):
            filter_orders(from_date="2026-03-09", to_date="2026-03-04")

    def test_buyer_and_today_queries(self):
        self.assertEqual(self._ids(orders_for_buyer(8)), [self.today.id])
        self.assertEqual(self._ids(orders_for_buyer(7, status="confirmed")), [self.recent.id])
        self.assertEqual(self._ids(today_orders()), [self.today.id])


class OrderAPITests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.staff = User.objects.create_user(username="seller", password="testpass", is_staff=True)
        self.buyer = User.objects.create_user(username="buyer", password="testpass")
        self.other = User.objects.create_user(username="other", password="testpass")
        self.p = CatalogService.create_product(name="Water 1L", category="water", rate="15.00", stock_quantity=3)

    def _place(self, user, quantity=2):
        self.client.force_authenticate(user)
        return self.client.post(
            reverse("orders-list"),
            {
                "buyer_name": "Asha",
                "buyer_address": "12 Lake Road",
                "total": "50.00",
                "items": [{"product_id": self.p.id, "quantity": quantity}],
            },
            format="json",
        )

    def test_buyer_places_order_for_self(self):
        resp = self._place(self.buyer)
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["buyer_id"], self.buyer.pk)
        self.assertEqual(resp.data["status"], "pending")
        self.assertEqual(len(resp.data["items"]), 1)

        self.client.force_authenticate(self.other)
        resp = self.client.get(reverse("orders-list"))
        self.assertEqual(resp.data["count"], 0)

    def test_staff_drives_lifecycle(self):
        order_id = self._place(self.buyer).data["id"]
        self.client.force_authenticate(self.staff)

        resp = self.client.post(reverse("orders-confirm", kwargs={"pk": order_id}), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["confirmed_by"], "seller")

        resp = self.client.post(
            reverse("orders-on-the-way", kwargs={"pk": order_id}), {"total_delivery_seconds": 600}, format="json"
        )
        self.assertEqual(resp.data["delivery_time_minutes"], 10)

        resp = self.client.post(
            reverse("orders-bill", kwargs={"pk": order_id}), {"final_bill_amount": "50.01"}, format="json"
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "validation_error")

        resp = self.client.post(
            reverse("orders-bill", kwargs={"pk": order_id}), {"final_bill_amount": "50.00"}, format="json"
        )
        self.assertEqual(resp.data["payment_status"], "PAID")

        resp = self.client.post(reverse("orders-deliver", kwargs={"pk": order_id}), {}, format="json")
        self.assertEqual(resp.data["status"], "delivered")

        resp = self.client.get(reverse("orders-history", kwargs={"pk": order_id}))
        self.assertEqual([h["new_status"] for h in resp.data][-1], "delivered")

    def test_illegal_transition_is_409(self):
        order_id = self._place(self.buyer).data["id"]
        self.client.force_authenticate(self.staff)
        resp = self.client.post(reverse("orders-deliver", kwargs={"pk": order_id}), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["code"], "invalid_state")

    def test_insufficient_stock_is_409(self):
        order_id = self._place(self.buyer, quantity=5).data["id"]
        self.client.force_authenticate(self.staff)
        resp = self.client.post(reverse("orders-confirm", kwargs={"pk": order_id}), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["code"], "insufficient_stock")

    def test_stale_version_is_409(self):
        order = self._place(self.buyer).data
        self.client.force_authenticate(self.staff)
        resp = self.client.post(
            reverse("orders-cancel", kwargs={"pk": order["id"]}),
            {"expected_version": order["version"] + 5, "reason": "dup"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["code"], "conflict")

    def test_empty_items_rejected(self):
        self.client.force_authenticate(self.buyer)
        resp = self.client.post(
            reverse("orders-list"),
            {"buyer_name": "Asha", "total": "10.00", "items": []},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "validation_error")

    def test_buyer_cannot_confirm(self):
        order_id = self._place(self.buyer).data["id"]
        resp = self.client.post(reverse("orders-confirm", kwargs={"pk": order_id}), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_order_is_404(self):
        self.client.force_authenticate(self.staff)
        resp = self.client.post(reverse("orders-confirm", kwargs={"pk": 99999}), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_staff_filters_by_status(self):
        self._place(self.buyer)
        self.client.force_authenticate(self.staff)
        resp = self.client.get(reverse("orders-list"), {"status": "confirmed"})
        self.assertEqual(resp.data["count"], 0)

        resp = self.client.get(reverse("orders-list"), {"status": "bogus"})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
