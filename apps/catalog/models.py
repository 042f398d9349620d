# apps/catalog/models.py
from django.conf import settings
from django.db import models

from apps.utils.models import TimestampedModel


def default_low_stock_threshold():
    return settings.DEFAULT_LOW_STOCK_THRESHOLD


class Product(TimestampedModel):
    """
    Sellable catalog entry.

    ``stock_quantity`` is owned by the stock ledger
    (``apps.inventory.services.StockLedger``); nothing else writes it.
    """

    class Category(models.TextChoices):
        WATER = "water", "Water"
        BEVERAGE = "beverage", "Beverage"

    name = models.CharField(max_length=100)
    category = models.CharField(max_length=20, choices=Category.choices, db_index=True)
    description = models.TextField(null=True, blank=True)

    stock_quantity = models.PositiveIntegerField(default=0)
    low_stock_threshold = models.PositiveIntegerField(default=default_low_stock_threshold)

    rate = models.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["category", "name"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock_quantity__gte=0),
                name="product_stock_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(rate__gte=0),
                name="product_rate_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.stock_quantity})"

    @property
    def is_low_stock(self):
        return self.stock_quantity <= self.low_stock_threshold
