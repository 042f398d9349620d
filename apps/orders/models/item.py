from django.db import models
from .order import Order

__all__ = ["OrderItem"]


class OrderItem(models.Model):
    """
    Snapshot line: name and rate are frozen when the line is written and are
    only replaced together with the whole item set on edit.
    """
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey("catalog.Product", on_delete=models.PROTECT, related_name='order_items')

    item_name = models.CharField(max_length=100)
    rate = models.DecimalField(max_digits=10, decimal_places=2)
    quantity = models.PositiveIntegerField()
    subtotal = models.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gte=1), name="order_item_quantity_positive"),
        ]

    def __str__(self):
        return f"{self.quantity}x {self.item_name}"
