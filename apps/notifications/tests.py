# apps/notifications/tests.py
from unittest import mock

from celery.exceptions import Retry
from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase, APIClient

from apps.catalog.services import CatalogService
from apps.orders.services import OrderLifecycleService
from apps.orders.signals import BILL_UPDATED
from apps.utils.exceptions import InsufficientStockError, NotFoundError
from .models import AdminNotification, BuyerDevice, BuyerNotification, PushStatus
from .services import (
    clear_admin_notifications,
    mark_admin_read,
    mark_buyer_read,
    notify_buyer,
    render_buyer_message,
    unread_admin_count,
    unread_buyer_count,
)
from .tasks import send_buyer_push_task

User = get_user_model()


class NotificationFixturesMixin:
    def setUp(self):
        super().setUp()
        self.water = CatalogService.create_product(name="Water 20L", category="water", rate="40.00", stock_quantity=10)

    def _order(self, buyer_id=7):
        return OrderLifecycleService.create(
            buyer_id=buyer_id,
            buyer_name="Ravi",
            items=[{"product_id": self.water.id, "quantity": 2}],
            total="104.00",
        )


class LifecycleNotificationTests(NotificationFixturesMixin, TestCase):
    def test_new_order_lands_in_admin_inbox(self):
        with self.captureOnCommitCallbacks(execute=True):
            order = self._order()

        note = AdminNotification.objects.get(order=order)
        self.assertEqual(note.customer_name, "Ravi")
        self.assertEqual(str(note.total), "104.00")
        self.assertEqual(note.item_count, 1)
        self.assertFalse(note.is_read)

    def test_confirm_notifies_buyer(self):
        order = self._order()
        with self.captureOnCommitCallbacks(execute=True):
            OrderLifecycleService.confirm(order.id, "seller")

        note = BuyerNotification.objects.get(buyer_id=7)
        self.assertEqual(note.title, "Order Status Updated")
        self.assertEqual(note.message, "Your order has been confirmed by the seller.")
        self.assertEqual(note.data, {"orderId": order.id, "status": "confirmed", "type": "order_update"})
        # No Firebase credentials under test settings
        self.assertEqual(note.push_status, PushStatus.SKIPPED)

    def test_nothing_is_stored_for_rolled_back_transition(self):
        order = OrderLifecycleService.create(
            buyer_id=7, buyer_name="Ravi",
            items=[{"product_id": self.water.id, "quantity": 50}], total="10.00",
        )
        with self.captureOnCommitCallbacks(execute=True):
            with self.assertRaises(InsufficientStockError):
                OrderLifecycleService.confirm(order.id, "seller")
        self.assertFalse(BuyerNotification.objects.exists())

    def test_notification_failure_keeps_transition(self):
        order = self._order()
        with mock.patch(
            "apps.notifications.receivers.notify_buyer", side_effect=RuntimeError("db hiccup")
        ):
            with self.captureOnCommitCallbacks(execute=True):
                OrderLifecycleService.cancel(order.id, "seller", "out of area")

        order.refresh_from_db()
        self.assertEqual(order.status, "canceled")
        self.assertFalse(BuyerNotification.objects.exists())


class RenderBuyerMessageTests(NotificationFixturesMixin, TestCase):
    def test_messages(self):
        order = self._order()

        _, message, _ = render_buyer_message("canceled", order)
        self.assertEqual(message, "Your order has been cancelled by the seller.")

        _, message, _ = render_buyer_message("delivered", order)
        self.assertEqual(message, f"Your order #{order.id} has been delivered! Thank you for your purchase.")

        _, message, _ = render_buyer_message("processing", order)
        self.assertEqual(message, f"Your order #{order.id} is on the way!")

        order.delivery_time_minutes = 3
        _, message, _ = render_buyer_message("processing", order)
        self.assertEqual(message, f"Your order #{order.id} is on the way! Expected delivery in 3 minutes.")

        _, message, _ = render_buyer_message("pending", order)
        self.assertEqual(message, f"Your order #{order.id} status has been updated to pending.")

    def test_bill_message(self):
        order = self._order()
        order.final_bill_amount = "90.00"
        order.payment_status = "PARTIALLY_PAID"
        title, message, payload = render_buyer_message(BILL_UPDATED, order)
        self.assertEqual(title, "Order Status Updated")
        self.assertIn("₹90.00", message)
        self.assertIn("PARTIALLY_PAID", message)


class InboxServiceTests(NotificationFixturesMixin, TestCase):
    def test_admin_read_and_clear(self):
        with self.captureOnCommitCallbacks(execute=True):
            first = self._order()
            self._order()
        self.assertEqual(unread_admin_count(), 2)

        mark_admin_read(AdminNotification.objects.get(order=first).pk)
        self.assertEqual(unread_admin_count(), 1)

        with self.assertRaises(NotFoundError):
            mark_admin_read(999999)

        self.assertEqual(clear_admin_notifications(), 2)
        self.assertFalse(AdminNotification.objects.exists())

    def test_buyer_can_only_read_own(self):
        with self.captureOnCommitCallbacks(execute=True):
            note = notify_buyer(7, "Order Status Updated", "hello")
        self.assertEqual(unread_buyer_count(7), 1)

        with self.assertRaises(NotFoundError):
            mark_buyer_read(note.pk, buyer_id=8)

        mark_buyer_read(note.pk, buyer_id=7)
        self.assertEqual(unread_buyer_count(7), 0)


class PushTaskTests(TestCase):
    def setUp(self):
        self.device = BuyerDevice.objects.create(buyer_id=7, token="tok-1")
        self.note = BuyerNotification.objects.create(
            buyer_id=7, title="Order Status Updated", message="hi", data={"orderId": 1}
        )

    def test_skipped_without_credentials(self):
        send_buyer_push_task(self.note.pk)
        self.note.refresh_from_db()
        self.assertEqual(self.note.push_status, PushStatus.SKIPPED)

    @mock.patch("apps.notifications.tasks.push_enabled", return_value=True)
    @mock.patch("apps.notifications.tasks.send_push_to_device", return_value="projects/x/messages/1")
    def test_sent(self, send, _enabled):
        result = send_buyer_push_task(self.note.pk)

        self.assertEqual(result, "projects/x/messages/1")
        send.assert_called_once()
        self.note.refresh_from_db()
        self.assertEqual(self.note.push_status, PushStatus.SENT)
        self.assertIsNotNone(self.note.sent_at)

    @mock.patch("apps.notifications.tasks.push_enabled", return_value=True)
    def test_skipped_without_devices(self, _enabled):
        self.device.is_active = False
        self.device.save()
        send_buyer_push_task(self.note.pk)
        self.note.refresh_from_db()
        self.assertEqual(self.note.push_status, PushStatus.SKIPPED)
        self.assertEqual(self.note.error_message, "No active devices")

    @override_settings(NOTIFICATION_PUSH_MAX_RETRIES=3)
    @mock.patch("apps.notifications.tasks.push_enabled", return_value=True)
    @mock.patch("apps.notifications.tasks.send_push_to_device", side_effect=RuntimeError("fcm down"))
    def test_transport_failure_is_retried(self, _send, _enabled):
        with mock.patch.object(send_buyer_push_task, "retry", side_effect=Retry()) as retry:
            with self.assertRaises(Retry):
                send_buyer_push_task(self.note.pk)

        self.assertEqual(retry.call_args.kwargs["max_retries"], 3)
        self.note.refresh_from_db()
        self.assertEqual(self.note.push_status, PushStatus.FAILED)
        self.assertEqual(self.note.error_message, "fcm down")

    def test_missing_notification(self):
        self.assertIsNone(send_buyer_push_task(123456))


class NotificationAPITests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.staff = User.objects.create_user(username="seller", password="testpass", is_staff=True)
        self.buyer = User.objects.create_user(username="buyer", password="testpass")

    def test_buyer_inbox(self):
        BuyerNotification.objects.create(buyer_id=self.buyer.pk, title="t", message="mine")
        BuyerNotification.objects.create(buyer_id=self.staff.pk, title="t", message="not mine")

        self.client.force_authenticate(self.buyer)
        resp = self.client.get(reverse("notification-list"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([n["message"] for n in resp.data["results"]], ["mine"])

        resp = self.client.get(reverse("notification-unread-count"))
        self.assertEqual(resp.data["unread"], 1)

    def test_register_device_twice_updates(self):
        self.client.force_authenticate(self.buyer)
        for _ in range(2):
            resp = self.client.post(
                reverse("notification-fcm-register"), {"token": "abc", "device_type": "ios"}, format="json"
            )
            self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(BuyerDevice.objects.filter(token="abc", buyer_id=self.buyer.pk).count(), 1)

    def test_admin_endpoints_require_staff(self):
        self.client.force_authenticate(self.buyer)
        resp = self.client.get(reverse("admin-notification-list"))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.staff)
        resp = self.client.post(reverse("admin-notification-mark-read", kwargs={"pk": 4242}))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

        resp = self.client.post(reverse("admin-notification-clear"))
        self.assertEqual(resp.data["deleted"], 0)
