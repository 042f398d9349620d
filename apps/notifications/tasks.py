import logging

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from .fcm import push_enabled, send_push_to_device
from .models import BuyerDevice, BuyerNotification, PushStatus

logger = logging.getLogger(__name__)


def _finish(notification, push_status, provider_id="", error=""):
    notification.push_status = push_status
    notification.provider_message_id = provider_id or ""
    notification.error_message = error
    notification.sent_at = timezone.now() if push_status == PushStatus.SENT else None
    notification.save(update_fields=["push_status", "provider_message_id", "error_message", "sent_at", "updated_at"])


@shared_task(bind=True, max_retries=3, default_retry_delay=10)
def send_buyer_push_task(self, notification_id):
    """
    Push a buyer inbox row to every active device of that buyer.
    Transport failures are retried a bounded number of times, then the row
    is left as failed. The inbox row itself is never removed.
    """
    try:
        notification = BuyerNotification.objects.get(pk=notification_id)
    except BuyerNotification.DoesNotExist:
        logger.error("Buyer notification %s not found.", notification_id)
        return None

    if notification.push_status == PushStatus.SENT:
        return notification.provider_message_id

    if not push_enabled():
        _finish(notification, PushStatus.SKIPPED, error="Push not configured")
        return None

    devices = list(BuyerDevice.objects.filter(buyer_id=notification.buyer_id, is_active=True))
    if not devices:
        _finish(notification, PushStatus.SKIPPED, error="No active devices")
        return None

    last_response = None
    try:
        for device in devices:
            last_response = send_push_to_device(
                device,
                title=notification.title,
                body=notification.message,
                data=notification.data,
            ) or last_response
    except Exception as exc:
        logger.warning(
            "Push for notification %s failed (attempt %s): %s",
            notification_id, self.request.retries + 1, exc,
            extra={"buyer_id": notification.buyer_id},
        )
        _finish(notification, PushStatus.FAILED, error=str(exc))
        raise self.retry(exc=exc, max_retries=settings.NOTIFICATION_PUSH_MAX_RETRIES)

    if last_response:
        _finish(notification, PushStatus.SENT, provider_id=last_response)
    else:
        _finish(notification, PushStatus.SKIPPED, error="No device accepted the push")
    return last_response
