# apps/orders/signals.py
from django.dispatch import Signal

# Both signals are dispatched after the lifecycle transaction commits
# (see UnitOfWork.emit); receivers can never roll a transition back.

# args: order
order_created = Signal()

# args: order, event, old_status, new_status
# event is the new status for transitions, or BILL_UPDATED for billing.
order_status_changed = Signal()

BILL_UPDATED = "bill_updated"
