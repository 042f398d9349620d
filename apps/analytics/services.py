# apps/analytics/services.py
import logging
from datetime import date, datetime, time
from decimal import Decimal

from django.db.models import Count, Q, Sum
from django.utils import timezone

from apps.catalog.models import Product
from apps.orders.models import Order
from apps.utils.exceptions import ValidationError
from apps.utils.validators import parse_iso_date

logger = logging.getLogger(__name__)


def _start_end_of_day(day: date):
    """
    Given a date, return its start & end datetime in current timezone.
    """
    start = timezone.make_aware(datetime.combine(day, time.min))
    end = timezone.make_aware(datetime.combine(day, time.max))
    return start, end


def _short(day: date) -> str:
    return f"{day:%b} {day.day}"


def _long(day: date) -> str:
    return f"{_short(day)}, {day.year}"


def date_range_label(from_date: date | None, to_date: date | None) -> str:
    """
    "All Time", "Mar 4, 2026", "Mar 4 - Mar 9, 2026", "Dec 30, 2025 - Jan 2, 2026"
    """
    if from_date is None or to_date is None:
        return "All Time"
    if from_date == to_date:
        return _long(from_date)
    if from_date.year == to_date.year:
        return f"{_short(from_date)} - {_long(to_date)}"
    return f"{_long(from_date)} - {_long(to_date)}"


def dashboard_stats(from_date=None, to_date=None) -> dict:
    """
    Seller dashboard numbers. A range applies only when both dates are given.
    """
    from_date = parse_iso_date(from_date, "from_date")
    to_date = parse_iso_date(to_date, "to_date")
    ranged = from_date is not None and to_date is not None
    if ranged and from_date > to_date:
        raise ValidationError("from_date must be on or before to_date.")

    orders = Order.objects.all()
    if ranged:
        orders = orders.filter(
            created_at__gte=_start_end_of_day(from_date)[0],
            created_at__lte=_start_end_of_day(to_date)[1],
        )

    totals = orders.aggregate(
        total_orders=Count("id"),
        pending_orders=Count("id", filter=Q(status=Order.Status.PENDING)),
        delivered_orders=Count("id", filter=Q(status=Order.Status.DELIVERED)),
        total_revenue=Sum("total"),
    )

    # A single bound keeps all-time totals but reports no today count
    today = timezone.localdate()
    today_orders = 0
    unbounded = from_date is None and to_date is None
    if unbounded or (ranged and from_date <= today <= to_date):
        start, end = _start_end_of_day(today)
        today_orders = orders.filter(created_at__gte=start, created_at__lte=end).count()

    stats = {
        "total_orders": totals["total_orders"],
        "pending_orders": totals["pending_orders"],
        "delivered_orders": totals["delivered_orders"],
        "total_revenue": totals["total_revenue"] or Decimal("0.00"),
        "products_count": Product.objects.count(),
        "date_range_label": date_range_label(from_date if ranged else None, to_date if ranged else None),
        "today_orders": today_orders,
    }
    logger.debug("Dashboard stats computed for %s", stats["date_range_label"])
    return stats
