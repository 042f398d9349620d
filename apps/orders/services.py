import logging
from decimal import Decimal

from django.conf import settings
from django.db.models import F
from django.utils import timezone

from apps.catalog.services import CatalogService
from apps.inventory.services import StockLedger
from apps.utils.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from apps.utils.uow import UnitOfWork
from apps.utils.utils import blank_to_none, money
from apps.utils.validators import validate_lat_lng, validate_phone, validate_positive_quantity

from .billing import BillingReconciler
from .history import record_status_change
from .models import Order, OrderItem
from .signals import BILL_UPDATED, order_created, order_status_changed

logger = logging.getLogger(__name__)

Status = Order.Status

# Administrative overrides only notify the buyer for these targets
FORCED_NOTIFY_STATUSES = (Status.CONFIRMED, Status.CANCELED, Status.DELIVERED)


def compute_total(subtotal) -> Decimal:
    """
    subtotal + tax + flat delivery fee, rounded half-up to 2 places.
    """
    subtotal = Decimal(subtotal)
    tax = subtotal * settings.ORDER_TAX_RATE
    return money(subtotal + tax + settings.ORDER_DELIVERY_FEE)


def _actor(actor, default):
    return blank_to_none(actor) or default


class OrderLifecycleService:
    """
    The order state machine.

        pending -> confirmed -> processing -> delivered
        pending | confirmed | processing -> canceled

    Every operation runs inside one UnitOfWork: the order row is locked, the
    stock ledger and the status history are written through the same unit,
    and the order is saved with a version check. Buyer/admin events are
    emitted on the unit and only dispatched after commit.
    """

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _lock_order(order_id) -> Order:
        try:
            return Order.objects.select_for_update().get(pk=order_id)
        except Order.DoesNotExist:
            raise NotFoundError(f"Order not found with id: {order_id}")

    @staticmethod
    def _check_version(order, expected_version):
        if expected_version is not None and order.version != expected_version:
            raise ConflictError(
                f"Order #{order.pk} has changed (version {order.version}, expected {expected_version})."
            )

    @staticmethod
    def _load(order_id, expected_version=None) -> Order:
        order = OrderLifecycleService._lock_order(order_id)
        OrderLifecycleService._check_version(order, expected_version)
        return order

    @staticmethod
    def _save(order, *fields):
        """
        Compare-and-set on ``version``. Zero rows means someone else saved
        the order after we read it; the enclosing unit rolls back.
        """
        now = timezone.now()
        values = {field: getattr(order, field) for field in fields}
        updated = Order.objects.filter(pk=order.pk, version=order.version).update(
            version=F("version") + 1,
            updated_at=now,
            **values,
        )
        if not updated:
            raise ConflictError(f"Order #{order.pk} was modified concurrently; reload and retry.")
        order.version += 1
        order.updated_at = now

    @staticmethod
    def _set_status(order, new_status, *extra_fields):
        old_status = order.status
        order.status = new_status
        order.status_updated_at = timezone.now()
        OrderLifecycleService._save(order, "status", "status_updated_at", *extra_fields)
        return old_status

    @staticmethod
    def _emit(uow, order, event, old_status):
        uow.emit(
            order_status_changed,
            sender=Order,
            order=order,
            event=event,
            old_status=old_status,
            new_status=order.status,
        )

    @staticmethod
    def _stock_lines(order):
        return [(item.product_id, item.quantity) for item in order.items.all()]

    @staticmethod
    def _prepare_lines(items, *, allow_snapshot=False):
        """
        Validate the incoming item list and snapshot name/rate.

        ``allow_snapshot`` lets checkout supply its own name/rate (create);
        edits always re-read them from the catalog.
        """
        if not items:
            raise ValidationError("Order must contain at least one item")

        for item in items:
            if item.get("product_id") is None:
                raise ValidationError("product_id is required")
            validate_positive_quantity(item.get("quantity"))

        products = CatalogService.get_products([item["product_id"] for item in items])

        lines = []
        for item in items:
            product = products[item["product_id"]]
            name = product.name
            rate = product.rate
            if allow_snapshot:
                name = blank_to_none(item.get("item_name")) or name
                if item.get("rate") is not None:
                    rate = money(item["rate"], f"rate for {name}")
                    if rate < 0:
                        raise ValidationError(f"Rate for {name} cannot be negative")
            rate = money(rate)
            lines.append({
                "product": product,
                "item_name": name,
                "rate": rate,
                "quantity": item["quantity"],
                "subtotal": money(rate * item["quantity"]),
            })
        return lines

    @staticmethod
    def _write_items(order, lines):
        return OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product=line["product"],
                item_name=line["item_name"],
                rate=line["rate"],
                quantity=line["quantity"],
                subtotal=line["subtotal"],
            )
            for line in lines
        ])

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @staticmethod
    def create(
        *,
        buyer_id,
        buyer_name,
        items,
        total,
        buyer_phone=None,
        buyer_address=None,
        delivery_address=None,
        latitude=None,
        longitude=None,
        actor="system",
        uow=None,
    ) -> Order:
        """
        Persist a new ``pending`` order. Stock is untouched until confirm.
        """
        if buyer_id is None:
            raise ValidationError("buyer_id is required")
        if not blank_to_none(buyer_name):
            raise ValidationError("Buyer name is required")
        if total is None or total == "":
            raise ValidationError("Order total is required")
        total = money(total, "order total")
        if total < 0:
            raise ValidationError("Order total cannot be negative")

        buyer_phone = blank_to_none(buyer_phone)
        if buyer_phone:
            validate_phone(buyer_phone)

        # Coordinates are kept only as a pair
        if latitude is not None and longitude is not None:
            validate_lat_lng(latitude, longitude)
        else:
            latitude = longitude = None

        lines = OrderLifecycleService._prepare_lines(items, allow_snapshot=True)
        actor = _actor(actor, "system")

        with UnitOfWork.ensure(uow) as uow:
            order = Order.objects.create(
                buyer_id=buyer_id,
                buyer_name=buyer_name.strip(),
                buyer_phone=buyer_phone,
                buyer_address=blank_to_none(buyer_address),
                delivery_address=blank_to_none(delivery_address) or blank_to_none(buyer_address),
                latitude=latitude,
                longitude=longitude,
                total=total,
                status=Status.PENDING,
                status_updated_at=timezone.now(),
            )
            OrderLifecycleService._write_items(order, lines)
            record_status_change(order, None, Status.PENDING, actor, "Order created", uow=uow)
            uow.emit(order_created, sender=Order, order=order)

        logger.info(
            "Order #%s created for buyer %s, total %s", order.pk, buyer_id, total,
            extra={"order_id": order.pk, "buyer_id": buyer_id, "actor": actor},
        )
        return order

    @staticmethod
    def confirm(order_id, actor=None, *, expected_version=None, uow=None) -> Order:
        """
        pending -> confirmed. Deducts stock for every item, all or nothing.
        """
        actor = _actor(actor, "seller")
        with UnitOfWork.ensure(uow) as uow:
            order = OrderLifecycleService._load(order_id, expected_version)
            if order.status != Status.PENDING:
                raise InvalidStateError(
                    f"Only pending orders can be confirmed. Current status: {order.status}"
                )

            StockLedger.deduct_many(
                OrderLifecycleService._stock_lines(order),
                order_id=order.pk, actor=actor, uow=uow,
            )

            order.confirmed_by = actor
            old_status = OrderLifecycleService._set_status(order, Status.CONFIRMED, "confirmed_by")
            record_status_change(
                order, old_status, Status.CONFIRMED, actor, "Order confirmed, stock deducted", uow=uow
            )
            OrderLifecycleService._emit(uow, order, Status.CONFIRMED, old_status)

        logger.info("Order #%s confirmed by %s", order.pk, actor, extra={"order_id": order.pk, "actor": actor})
        return order

    @staticmethod
    def edit(
        order_id,
        items,
        *,
        delivery_address=None,
        buyer_phone=None,
        actor=None,
        expected_version=None,
        uow=None,
    ) -> Order:
        """
        Replace the whole item set of a pending/confirmed order.

        A confirmed order gives its stock back first and takes the new
        quantities afterwards, so inventory never double counts. ``None``
        leaves address/phone untouched, a blank string clears them.
        """
        actor = _actor(actor, "seller")
        with UnitOfWork.ensure(uow) as uow:
            order = OrderLifecycleService._load(order_id, expected_version)
            if order.is_terminal:
                raise InvalidStateError("Delivered or canceled orders cannot be edited")
            if not order.can_edit:
                raise InvalidStateError("Only pending or confirmed orders can be edited")

            lines = OrderLifecycleService._prepare_lines(items)
            if buyer_phone is not None and blank_to_none(buyer_phone):
                validate_phone(blank_to_none(buyer_phone))

            holds_stock = order.status == Status.CONFIRMED
            if holds_stock:
                StockLedger.restore_many(
                    OrderLifecycleService._stock_lines(order),
                    order_id=order.pk, actor=actor, uow=uow,
                    notes=f"Stock restored for edit of order #{order.pk}",
                )

            if delivery_address is not None:
                order.delivery_address = blank_to_none(delivery_address)
            if buyer_phone is not None:
                order.buyer_phone = blank_to_none(buyer_phone)

            # Owning side: old lines are deleted, never patched
            order.items.all().delete()
            new_items = OrderLifecycleService._write_items(order, lines)
            order.total = compute_total(sum((item.subtotal for item in new_items), Decimal("0")))
            OrderLifecycleService._save(order, "total", "delivery_address", "buyer_phone")

            if holds_stock:
                StockLedger.deduct_many(
                    [(item.product_id, item.quantity) for item in new_items],
                    order_id=order.pk, actor=actor, uow=uow,
                )

        logger.info(
            "Order #%s edited by %s: %d item(s), new total %s", order.pk, actor, len(lines), order.total,
            extra={"order_id": order.pk, "actor": actor},
        )
        return order

    @staticmethod
    def mark_processing(
        order_id,
        *,
        tracking_number=None,
        delivery_partner=None,
        estimated_delivery=None,
        actor=None,
        expected_version=None,
        uow=None,
    ) -> Order:
        actor = _actor(actor, "seller")
        with UnitOfWork.ensure(uow) as uow:
            order = OrderLifecycleService._load(order_id, expected_version)
            if order.status != Status.CONFIRMED:
                raise InvalidStateError(
                    f"Only confirmed orders can be marked as processing. Current status: {order.status}"
                )

            order.tracking_number = blank_to_none(tracking_number)
            order.delivery_partner = blank_to_none(delivery_partner)
            order.estimated_delivery = estimated_delivery
            old_status = OrderLifecycleService._set_status(
                order, Status.PROCESSING, "tracking_number", "delivery_partner", "estimated_delivery"
            )
            record_status_change(
                order, old_status, Status.PROCESSING, actor,
                f"Order in processing with tracking: {order.tracking_number}", uow=uow,
            )
        return order

    @staticmethod
    def set_on_the_way(order_id, total_delivery_seconds, *, actor=None, expected_version=None, uow=None) -> Order:
        """
        confirmed -> processing with a delivery countdown.

        The legacy minutes field is derived from the seconds (rounded up,
        at least 1); it is never written on its own.
        """
        seconds = total_delivery_seconds
        if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds < 1:
            raise ValidationError("Delivery time must be a positive number of seconds")

        actor = _actor(actor, "seller")
        with UnitOfWork.ensure(uow) as uow:
            order = OrderLifecycleService._load(order_id, expected_version)
            if order.status != Status.CONFIRMED:
                raise InvalidStateError(
                    f"Only confirmed orders can be set to On The Way. Current status: {order.status}"
                )

            started = timezone.now()
            order.delivery_total_seconds = seconds
            order.delivery_time_minutes = max(1, -(-seconds // 60))
            order.start_time = started
            order.delivery_start_timestamp = int(started.timestamp())
            old_status = OrderLifecycleService._set_status(
                order, Status.PROCESSING,
                "delivery_total_seconds", "delivery_time_minutes", "start_time", "delivery_start_timestamp",
            )
            record_status_change(
                order, old_status, Status.PROCESSING, actor,
                f"Order set to On The Way with delivery time: {seconds} seconds", uow=uow,
            )
            OrderLifecycleService._emit(uow, order, Status.PROCESSING, old_status)
        return order

    @staticmethod
    def update_bill(order_id, final_bill_amount, *, notes=None, actor=None, expected_version=None, uow=None) -> Order:
        """
        Record the final bill while the order is on the way. Status is unchanged.
        """
        if final_bill_amount is None or final_bill_amount == "":
            raise ValidationError("Final bill amount is required")
        amount = money(final_bill_amount, "bill amount")
        if amount <= 0:
            raise ValidationError("Final bill amount must be greater than zero")

        actor = _actor(actor, "seller")
        notes = blank_to_none(notes)
        with UnitOfWork.ensure(uow) as uow:
            order = OrderLifecycleService._load(order_id, expected_version)
            if order.status != Status.PROCESSING:
                raise InvalidStateError(
                    "Bill can only be updated for orders in 'processing' (On The Way) status. "
                    f"Current status: {order.status}"
                )

            payment_status = BillingReconciler.payment_status(order.total, amount)

            order.final_bill_amount = amount
            order.payment_status = payment_status
            order.billed_by = actor
            order.billed_at = timezone.now()
            order.billing_notes = notes
            OrderLifecycleService._save(
                order, "final_bill_amount", "payment_status", "billed_by", "billed_at", "billing_notes"
            )

            history_note = f"Bill updated: ₹{amount} (Original: ₹{order.total}). Payment Status: {payment_status}"
            if notes:
                history_note += f". Notes: {notes}"
            record_status_change(order, order.status, order.status, actor, history_note, uow=uow)
            OrderLifecycleService._emit(uow, order, BILL_UPDATED, order.status)

        logger.info(
            "Order #%s billed %s (%s) by %s", order.pk, amount, payment_status, actor,
            extra={"order_id": order.pk, "actor": actor},
        )
        return order

    @staticmethod
    def mark_delivered(order_id, actor=None, *, expected_version=None, uow=None) -> Order:
        """
        processing -> delivered. Calling it again on a delivered order is a no-op.
        """
        actor = _actor(actor, "seller")
        with UnitOfWork.ensure(uow) as uow:
            order = OrderLifecycleService._lock_order(order_id)
            if order.status == Status.DELIVERED:
                return order

            OrderLifecycleService._check_version(order, expected_version)
            if order.status != Status.PROCESSING:
                raise InvalidStateError(
                    "Only orders in 'processing' (On The Way) status can be marked as delivered. "
                    f"Current status: {order.status}"
                )
            if order.final_bill_amount is None:
                raise ValidationError(
                    "Bill must be finalized before marking order as delivered. "
                    "Please add/edit the bill first."
                )

            order.delivered_by = actor
            old_status = OrderLifecycleService._set_status(order, Status.DELIVERED, "delivered_by")
            record_status_change(
                order, old_status, Status.DELIVERED, actor,
                f"Order delivered. Final bill: ₹{order.final_bill_amount}, "
                f"Payment status: {order.payment_status}",
                uow=uow,
            )
            OrderLifecycleService._emit(uow, order, Status.DELIVERED, old_status)

        logger.info("Order #%s delivered by %s", order.pk, actor, extra={"order_id": order.pk, "actor": actor})
        return order

    @staticmethod
    def cancel(order_id, actor=None, reason=None, *, expected_version=None, uow=None) -> Order:
        """
        Any non-terminal status -> canceled. Stock held by the order is returned.
        """
        actor = _actor(actor, "seller")
        with UnitOfWork.ensure(uow) as uow:
            order = OrderLifecycleService._load(order_id, expected_version)
            if order.status == Status.DELIVERED:
                raise InvalidStateError("Delivered orders cannot be canceled")
            if order.status == Status.CANCELED:
                raise InvalidStateError("Order is already canceled")

            if order.status in Order.STOCK_HELD_STATUSES:
                StockLedger.restore_many(
                    OrderLifecycleService._stock_lines(order),
                    order_id=order.pk, actor=actor, uow=uow,
                )

            old_status = OrderLifecycleService._set_status(order, Status.CANCELED)
            record_status_change(
                order, old_status, Status.CANCELED, actor,
                f"Order canceled: {blank_to_none(reason) or 'No reason provided'}", uow=uow,
            )
            OrderLifecycleService._emit(uow, order, Status.CANCELED, old_status)

        logger.info(
            "Order #%s canceled by %s (was %s)", order.pk, actor, old_status,
            extra={"order_id": order.pk, "actor": actor},
        )
        return order

    @staticmethod
    def force_set_status(order_id, status, actor=None, *, expected_version=None, uow=None) -> Order:
        """
        Administrative override: no transition rules, no stock movement.
        The caller owns inventory consistency afterwards.
        """
        if status not in Status.values:
            raise ValidationError(f"Invalid status: {status}")

        actor = _actor(actor, "system")
        with UnitOfWork.ensure(uow) as uow:
            order = OrderLifecycleService._load(order_id, expected_version)
            old_status = OrderLifecycleService._set_status(order, Status(status))
            record_status_change(order, old_status, order.status, actor, "Status updated", uow=uow)
            if old_status != order.status and order.status in FORCED_NOTIFY_STATUSES:
                OrderLifecycleService._emit(uow, order, order.status, old_status)

        logger.warning(
            "Order #%s status forced %s -> %s by %s", order.pk, old_status, order.status, actor,
            extra={"order_id": order.pk, "actor": actor},
        )
        return order
