"""
Top-level models import shim for the Orders app.

Lets ``from apps.orders.models import Order`` keep working while the
models themselves live in separate modules.
"""

from .order import *           # Order
from .item import *            # OrderItem
from .status_history import *  # OrderStatusHistory
