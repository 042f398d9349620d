# apps/orders/selectors.py
"""
Read-side queries for orders. Nothing here writes.
"""
from datetime import datetime, time, timedelta

from django.conf import settings
from django.utils import timezone

from apps.utils.exceptions import NotFoundError, ValidationError
from apps.utils.validators import parse_iso_date
from .models import Order


def _base_queryset():
    return Order.objects.prefetch_related("items").order_by("-created_at", "-id")


def _start_of(day):
    return timezone.make_aware(datetime.combine(day, time.min))


def _end_of(day):
    return timezone.make_aware(datetime.combine(day, time.max))


def parse_status(status):
    if status is None or not str(status).strip():
        return None
    value = str(status).strip().lower()
    if value not in Order.Status.values:
        raise ValidationError(f"Invalid status '{status}'.")
    return value


def get_order(order_id) -> Order:
    try:
        return _base_queryset().get(pk=order_id)
    except (Order.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Order not found with id: {order_id}")


def filter_orders(status=None, from_date=None, to_date=None):
    """
    Newest first. With either date given, the open side is closed at the
    end of today (upper) or ORDER_FILTER_FLOOR_DATE (lower).
    """
    status = parse_status(status)
    from_date = parse_iso_date(from_date, "from_date")
    to_date = parse_iso_date(to_date, "to_date")

    qs = _base_queryset()
    if status:
        qs = qs.filter(status=status)

    if from_date is None and to_date is None:
        return qs

    lower = from_date or settings.ORDER_FILTER_FLOOR_DATE
    upper = to_date or timezone.localdate()
    if lower > upper:
        raise ValidationError("from_date must be on or before to_date.")
    return qs.filter(created_at__gte=_start_of(lower), created_at__lte=_end_of(upper))


def orders_for_buyer(buyer_id, status=None):
    qs = _base_queryset().filter(buyer_id=buyer_id)
    status = parse_status(status)
    if status:
        qs = qs.filter(status=status)
    return qs


def orders_by_status(status):
    return _base_queryset().filter(status=parse_status(status))


def today_orders():
    return _base_queryset().filter(created_at__gte=_start_of(timezone.localdate()))


def week_orders():
    return _base_queryset().filter(created_at__gte=timezone.now() - timedelta(days=7))


def month_orders():
    first = timezone.localdate().replace(day=1)
    return _base_queryset().filter(created_at__gte=_start_of(first), created_at__lte=timezone.now())
