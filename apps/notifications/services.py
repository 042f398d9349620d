# apps/notifications/services.py
import logging

from django.db import transaction
from django.utils import timezone

from apps.orders.models import Order
from apps.orders.signals import BILL_UPDATED
from apps.utils.exceptions import NotFoundError
from .models import AdminNotification, BuyerNotification

logger = logging.getLogger(__name__)

BUYER_TITLE = "Order Status Updated"


def order_summary(order) -> dict:
    return {
        "order_id": order.pk,
        "customer_name": order.buyer_name,
        "total": order.total,
        "item_count": order.items.count(),
    }


def render_buyer_message(event, order) -> tuple[str, str, dict]:
    """
    Turn a lifecycle event into (title, message, push payload).
    """
    Status = Order.Status
    if event == Status.CONFIRMED:
        message = "Your order has been confirmed by the seller."
    elif event == Status.PROCESSING:
        if order.delivery_time_minutes is not None:
            message = (
                f"Your order #{order.pk} is on the way! "
                f"Expected delivery in {order.delivery_time_minutes} minutes."
            )
        else:
            message = f"Your order #{order.pk} is on the way!"
    elif event == Status.CANCELED:
        message = "Your order has been cancelled by the seller."
    elif event == Status.DELIVERED:
        message = f"Your order #{order.pk} has been delivered! Thank you for your purchase."
    elif event == BILL_UPDATED:
        message = (
            f"Your final bill for order #{order.pk} is ₹{order.final_bill_amount}. "
            f"Payment status: {order.payment_status}."
        )
    else:
        message = f"Your order #{order.pk} status has been updated to {order.status}."

    payload = {
        "orderId": order.pk,
        "status": str(order.status),
        "type": "order_update",
    }
    return BUYER_TITLE, message, payload


def notify_admin(summary: dict) -> AdminNotification:
    notification = AdminNotification.objects.create(
        order_id=summary["order_id"],
        customer_name=summary["customer_name"],
        total=summary["total"],
        item_count=summary.get("item_count", 0),
    )
    logger.info(
        "Admin notified of order #%s", summary["order_id"],
        extra={"order_id": summary["order_id"]},
    )
    return notification


def notify_buyer(buyer_id, title, message, payload=None, *, order_id=None) -> BuyerNotification:
    """
    Store the inbox row, then hand push delivery to Celery.
    """
    from .tasks import send_buyer_push_task

    notification = BuyerNotification.objects.create(
        buyer_id=buyer_id,
        order_id=order_id,
        title=title,
        message=message,
        data=payload or {},
    )
    transaction.on_commit(lambda: send_buyer_push_task.delay(notification.pk))
    return notification


# ---------------------------------------------------------------------
# Inbox queries
# ---------------------------------------------------------------------

def admin_notifications(unread_only=False):
    qs = AdminNotification.objects.all()
    if unread_only:
        qs = qs.filter(is_read=False)
    return qs


def unread_admin_count() -> int:
    return AdminNotification.objects.filter(is_read=False).count()


def mark_admin_read(notification_id) -> AdminNotification:
    try:
        notification = AdminNotification.objects.get(pk=notification_id)
    except AdminNotification.DoesNotExist:
        raise NotFoundError("Notification not found")
    notification.mark_read()
    return notification


def mark_all_admin_read() -> int:
    return AdminNotification.objects.filter(is_read=False).update(
        is_read=True, read_at=timezone.now(), updated_at=timezone.now()
    )


def clear_admin_notifications() -> int:
    deleted, _ = AdminNotification.objects.all().delete()
    logger.info("Cleared %s admin notifications", deleted)
    return deleted


def buyer_notifications(buyer_id, unread_only=False):
    qs = BuyerNotification.objects.filter(buyer_id=buyer_id)
    if unread_only:
        qs = qs.filter(is_read=False)
    return qs


def unread_buyer_count(buyer_id) -> int:
    return BuyerNotification.objects.filter(buyer_id=buyer_id, is_read=False).count()


def mark_buyer_read(notification_id, buyer_id) -> BuyerNotification:
    try:
        notification = BuyerNotification.objects.get(pk=notification_id, buyer_id=buyer_id)
    except BuyerNotification.DoesNotExist:
        raise NotFoundError("Notification not found")
    notification.mark_read()
    return notification
