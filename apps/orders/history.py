# apps/orders/history.py
import logging

from apps.utils.uow import UnitOfWork
from .models import OrderStatusHistory

logger = logging.getLogger(__name__)


def record_status_change(order, old_status, new_status, actor, notes="", uow=None):
    """
    Append one audit row. ``old_status`` is None only for the creation entry.
    """
    with UnitOfWork.ensure(uow):
        entry = OrderStatusHistory.objects.create(
            order=order,
            old_status=old_status,
            new_status=new_status,
            changed_by=actor,
            notes=notes or "",
        )
    logger.debug(
        "Order #%s: %s -> %s by %s", order.pk, old_status, new_status, actor,
        extra={"order_id": order.pk, "actor": actor},
    )
    return entry


def status_history(order_id):
    return OrderStatusHistory.objects.filter(order_id=order_id).order_by("changed_at", "id")
