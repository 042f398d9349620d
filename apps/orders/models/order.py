from django.db import models
from apps.utils.models import TimestampedModel

__all__ = ["Order"]


class Order(TimestampedModel):
    # Wire values are lowercase here and uppercase for payment status;
    # existing clients depend on both spellings.
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        CONFIRMED = "confirmed", "Confirmed"
        PROCESSING = "processing", "Processing (On The Way)"
        DELIVERED = "delivered", "Delivered"
        CANCELED = "canceled", "Canceled"

    class PaymentStatus(models.TextChoices):
        PAID = "PAID", "Paid"
        UNPAID = "UNPAID", "Unpaid"
        PARTIALLY_PAID = "PARTIALLY_PAID", "Partially paid"

    TERMINAL_STATUSES = (Status.DELIVERED, Status.CANCELED)
    EDITABLE_STATUSES = (Status.PENDING, Status.CONFIRMED)
    # Statuses in which the order's items are currently deducted from stock
    STOCK_HELD_STATUSES = (Status.CONFIRMED, Status.PROCESSING)

    # Buyer snapshot (no FK: identity lives in the auth collaborator)
    buyer_id = models.BigIntegerField(db_index=True)
    buyer_name = models.CharField(max_length=100)
    buyer_phone = models.CharField(max_length=20, blank=True, null=True)
    buyer_address = models.TextField(blank=True, null=True)

    delivery_address = models.TextField(blank=True, null=True)
    latitude = models.FloatField(blank=True, null=True)
    longitude = models.FloatField(blank=True, null=True)

    total = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    status_updated_at = models.DateTimeField(blank=True, null=True)

    # Delivery metadata
    tracking_number = models.CharField(max_length=100, blank=True, null=True)
    delivery_partner = models.CharField(max_length=100, blank=True, null=True)
    estimated_delivery = models.DateTimeField(blank=True, null=True)
    delivery_total_seconds = models.PositiveBigIntegerField(blank=True, null=True)
    delivery_start_timestamp = models.BigIntegerField(blank=True, null=True, help_text="Epoch seconds")
    delivery_time_minutes = models.PositiveIntegerField(
        blank=True, null=True, help_text="Legacy, derived from delivery_total_seconds"
    )
    start_time = models.DateTimeField(blank=True, null=True)

    confirmed_by = models.CharField(max_length=50, blank=True, null=True)
    delivered_by = models.CharField(max_length=50, blank=True, null=True)

    # Billing
    final_bill_amount = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, blank=True, null=True)
    billed_by = models.CharField(max_length=50, blank=True, null=True)
    billed_at = models.DateTimeField(blank=True, null=True)
    billing_notes = models.TextField(blank=True, null=True)

    version = models.PositiveIntegerField(default=0, editable=False)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["status", "created_at"]),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(total__gte=0), name="order_total_non_negative"),
        ]

    def __str__(self):
        return f"Order #{self.pk} [{self.status}]"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def can_edit(self):
        return self.status in self.EDITABLE_STATUSES

    @property
    def item_count(self):
        return self.items.count()
