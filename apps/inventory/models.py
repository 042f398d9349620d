from django.db import models

from apps.utils.models import AppendOnlyModel


class StockHistory(AppendOnlyModel):
    """
    Immutable ledger of every stock change.

    Invariants (also enforced by the database):
    quantity_after = quantity_before + quantity_change, quantity_after >= 0.
    """

    class ChangeType(models.TextChoices):
        ORDER_PLACED = "order_placed", "Order placed"
        ORDER_CONFIRMED = "order_confirmed", "Order confirmed"
        ORDER_CANCELED = "order_canceled", "Order canceled"
        MANUAL_ADJUSTMENT = "manual_adjustment", "Manual adjustment"
        RESTOCK = "restock", "Restock"

    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.PROTECT,
        related_name="stock_history",
    )
    order = models.ForeignKey(
        "orders.Order",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="stock_history",
    )

    change_type = models.CharField(max_length=50, choices=ChangeType.choices)
    quantity_change = models.IntegerField(help_text="Delta value (+/-)")
    quantity_before = models.IntegerField()
    quantity_after = models.IntegerField()

    changed_by = models.CharField(max_length=50, blank=True)
    changed_at = models.DateTimeField(auto_now_add=True, db_index=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["-changed_at", "-id"]
        verbose_name_plural = "Stock history"
        indexes = [
            models.Index(fields=["product", "changed_at"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity_after__gte=0),
                name="stock_history_after_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    quantity_after=models.F("quantity_before") + models.F("quantity_change")
                ),
                name="stock_history_delta_consistent",
            ),
        ]

    def __str__(self):
        return f"{self.product_id} {self.change_type} {self.quantity_change:+d} -> {self.quantity_after}"
