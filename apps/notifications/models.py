# apps/notifications/models.py
from django.db import models
from django.utils import timezone

from apps.utils.models import TimestampedModel


class PushStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"
    SKIPPED = "skipped", "Skipped"


class ReadableMixin(models.Model):
    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        abstract = True

    def mark_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=["is_read", "read_at", "updated_at"])


class AdminNotification(ReadableMixin, TimestampedModel):
    """
    Seller inbox row, one per placed order.
    """
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="admin_notifications",
    )
    customer_name = models.CharField(max_length=100)
    total = models.DecimalField(max_digits=10, decimal_places=2)
    item_count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"New order #{self.order_id} from {self.customer_name}"


class BuyerNotification(ReadableMixin, TimestampedModel):
    """
    Buyer inbox row. Push delivery is attempted by a Celery task
    (send_buyer_push_task) after the row exists.
    """
    buyer_id = models.BigIntegerField(db_index=True)
    order = models.ForeignKey(
        "orders.Order",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="buyer_notifications",
    )

    title = models.CharField(max_length=255)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)

    push_status = models.CharField(
        max_length=20,
        choices=PushStatus.choices,
        default=PushStatus.PENDING,
        db_index=True,
    )
    provider_message_id = models.CharField(max_length=255, blank=True)
    error_message = models.TextField(blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["buyer_id", "is_read", "created_at"]),
        ]

    def __str__(self):
        return f"{self.buyer_id}: {self.title}"


class BuyerDevice(TimestampedModel):
    """
    Device token for Firebase Cloud Messaging (Push Notifications).
    """

    class DeviceType(models.TextChoices):
        ANDROID = "android", "Android"
        IOS = "ios", "iOS"
        WEB = "web", "Web"

    buyer_id = models.BigIntegerField(db_index=True)
    token = models.CharField(max_length=255, unique=True)
    device_type = models.CharField(max_length=20, choices=DeviceType.choices, default=DeviceType.ANDROID)
    is_active = models.BooleanField(default=True)
    last_seen_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["buyer_id", "is_active"]),
        ]

    def __str__(self):
        return f"{self.buyer_id} - {self.device_type}"
