# apps/notifications/receivers.py
from django.dispatch import receiver

from apps.orders.signals import order_created, order_status_changed
from .services import notify_admin, notify_buyer, order_summary, render_buyer_message


@receiver(order_created, dispatch_uid="notifications.order_created")
def handle_order_created(sender, order, **kwargs):
    """
    New order -> seller inbox.
    """
    notify_admin(order_summary(order))


@receiver(order_status_changed, dispatch_uid="notifications.order_status_changed")
def handle_order_status_changed(sender, order, event, **kwargs):
    title, message, payload = render_buyer_message(event, order)
    notify_buyer(order.buyer_id, title, message, payload, order_id=order.pk)
