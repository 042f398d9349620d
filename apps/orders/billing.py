# apps/orders/billing.py
from decimal import Decimal

from apps.utils.exceptions import ValidationError
from apps.utils.utils import money
from .models import Order


class BillingReconciler:
    """
    Final bill vs. the order total. No I/O.
    """

    @staticmethod
    def validate(total, final_amount) -> Decimal:
        if final_amount is None or final_amount == "":
            raise ValidationError("Final bill amount is required")
        amount = money(final_amount, "bill amount")

        total = money(total, "order total")
        if amount < 0:
            raise ValidationError("Final bill amount cannot be negative")
        if amount > total:
            raise ValidationError(
                f"Final bill amount (₹{amount}) cannot exceed original order total (₹{total})"
            )
        return amount

    @staticmethod
    def payment_status(total, final_amount) -> str:
        amount = BillingReconciler.validate(total, final_amount)
        if amount == money(total):
            return Order.PaymentStatus.PAID
        if amount == 0:
            return Order.PaymentStatus.UNPAID
        return Order.PaymentStatus.PARTIALLY_PAID
