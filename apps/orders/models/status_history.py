from django.db import models
from apps.utils.models import AppendOnlyModel
from .order import Order

__all__ = ["OrderStatusHistory"]


class OrderStatusHistory(AppendOnlyModel):
    order = models.ForeignKey(Order, related_name="status_history", on_delete=models.PROTECT)

    old_status = models.CharField(max_length=20, blank=True, null=True)  # null on creation
    new_status = models.CharField(max_length=20)
    changed_by = models.CharField(max_length=50)
    changed_at = models.DateTimeField(auto_now_add=True, db_index=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["changed_at", "id"]
        verbose_name_plural = "Order status history"

    def __str__(self):
        return f"#{self.order_id}: {self.old_status or '-'} -> {self.new_status}"
