import logging
from collections import defaultdict
from typing import Iterable, List, Optional, Tuple

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.catalog.models import Product
from apps.utils.exceptions import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from apps.utils.uow import UnitOfWork
from apps.utils.validators import validate_positive_quantity

from .models import StockHistory

logger = logging.getLogger(__name__)

ChangeType = StockHistory.ChangeType


class StockLedger:
    """
    Core logic for stock movement.
    ALL stock changes must pass through here.

    Every mutation locks the product row, applies a guarded
    ``UPDATE ... SET stock_quantity = stock_quantity +/- n`` and re-reads the
    committed value, so the history entry always agrees with the row and two
    writers on the same product can never lose an update.
    """

    @staticmethod
    def _lock(product_id) -> Product:
        try:
            return Product.objects.select_for_update().get(pk=product_id)
        except Product.DoesNotExist:
            raise NotFoundError(f"Product not found with id: {product_id}")

    @staticmethod
    def _current(product_id) -> int:
        return Product.objects.values_list("stock_quantity", flat=True).get(pk=product_id)

    @staticmethod
    def _move(product_id, delta: int, *, change_type, order_id, actor, notes, uow) -> StockHistory:
        with UnitOfWork.ensure(uow):
            product = StockLedger._lock(product_id)

            rows = Product.objects.filter(pk=product.pk)
            if delta < 0:
                rows = rows.filter(stock_quantity__gte=-delta)
            updated = rows.update(
                stock_quantity=F("stock_quantity") + delta,
                updated_at=timezone.now(),
            )
            if not updated:
                available = StockLedger._current(product.pk)
                raise InsufficientStockError(
                    f"Insufficient stock for {product.name}. "
                    f"Required: {-delta}, Available: {available}",
                    product_id=product.pk,
                    requested=-delta,
                    available=available,
                )

            after = StockLedger._current(product.pk)
            entry = StockHistory.objects.create(
                product_id=product.pk,
                order_id=order_id,
                change_type=change_type,
                quantity_change=delta,
                quantity_before=after - delta,
                quantity_after=after,
                changed_by=actor or "",
                notes=notes or "",
            )

        logger.info(
            "Stock %s: product=%s %+d -> %s",
            change_type, product.pk, delta, after,
            extra={"product_id": product.pk, "order_id": order_id, "actor": actor},
        )
        return entry

    @staticmethod
    def deduct(
        product_id,
        quantity: int,
        *,
        order_id=None,
        actor: str = "system",
        notes: Optional[str] = None,
        change_type=ChangeType.ORDER_CONFIRMED,
        uow: Optional[UnitOfWork] = None,
    ) -> StockHistory:
        """
        Fails with InsufficientStockError when stock < quantity; nothing is written then.
        """
        validate_positive_quantity(quantity)
        if notes is None:
            notes = f"Stock deducted for order #{order_id}" if order_id else "Stock deducted"
        return StockLedger._move(
            product_id, -quantity,
            change_type=change_type, order_id=order_id, actor=actor, notes=notes, uow=uow,
        )

    @staticmethod
    def restore(
        product_id,
        quantity: int,
        *,
        order_id=None,
        actor: str = "system",
        notes: Optional[str] = None,
        change_type=ChangeType.ORDER_CANCELED,
        uow: Optional[UnitOfWork] = None,
    ) -> StockHistory:
        validate_positive_quantity(quantity)
        if notes is None:
            notes = f"Stock restored from canceled order #{order_id}" if order_id else "Stock restored"
        return StockLedger._move(
            product_id, quantity,
            change_type=change_type, order_id=order_id, actor=actor, notes=notes, uow=uow,
        )

    @staticmethod
    def restock(product_id, quantity: int, *, actor: str, notes: str = "", uow=None) -> StockHistory:
        """Goods received."""
        validate_positive_quantity(quantity)
        return StockLedger._move(
            product_id, quantity,
            change_type=ChangeType.RESTOCK, order_id=None, actor=actor, notes=notes or "Restock", uow=uow,
        )

    @staticmethod
    def manual_adjust(product_id, new_quantity: int, *, actor: str, notes: str = "", uow=None) -> StockHistory:
        """
        For cycle counts / audits: set an absolute quantity and record the signed delta.
        """
        if isinstance(new_quantity, bool) or not isinstance(new_quantity, int) or new_quantity < 0:
            raise ValidationError("Stock quantity must be a non-negative integer.")

        with UnitOfWork.ensure(uow):
            product = StockLedger._lock(product_id)
            before = product.stock_quantity

            # Compare-and-set against the value we just read under the lock.
            updated = Product.objects.filter(pk=product.pk, stock_quantity=before).update(
                stock_quantity=new_quantity,
                updated_at=timezone.now(),
            )
            if not updated:
                raise ConflictError(f"Stock for {product.name} changed during adjustment; retry.")

            entry = StockHistory.objects.create(
                product_id=product.pk,
                change_type=ChangeType.MANUAL_ADJUSTMENT,
                quantity_change=new_quantity - before,
                quantity_before=before,
                quantity_after=new_quantity,
                changed_by=actor or "",
                notes=notes or "",
            )

        logger.info(
            "Stock manual adjustment: product=%s %s -> %s by %s",
            product.pk, before, new_quantity, actor,
            extra={"product_id": product.pk, "actor": actor},
        )
        return entry

    # ------------------------------------------------------------------
    # Order-level helpers (all-or-nothing across lines)
    # ------------------------------------------------------------------

    @staticmethod
    def _sorted_lines(lines: Iterable[Tuple[int, int]]) -> List[Tuple[int, int]]:
        # One movement per product, locked in ascending id order so two
        # orders touching the same products cannot deadlock.
        totals = defaultdict(int)
        for product_id, quantity in lines:
            validate_positive_quantity(quantity)
            totals[product_id] += quantity
        return sorted(totals.items())

    @staticmethod
    def deduct_many(lines, *, order_id, actor, uow=None, notes=None) -> List[StockHistory]:
        with UnitOfWork.ensure(uow), transaction.atomic():
            return [
                StockLedger.deduct(pid, qty, order_id=order_id, actor=actor, notes=notes, uow=uow)
                for pid, qty in StockLedger._sorted_lines(lines)
            ]

    @staticmethod
    def restore_many(lines, *, order_id, actor, uow=None, notes=None) -> List[StockHistory]:
        with UnitOfWork.ensure(uow), transaction.atomic():
            return [
                StockLedger.restore(pid, qty, order_id=order_id, actor=actor, notes=notes, uow=uow)
                for pid, qty in StockLedger._sorted_lines(lines)
            ]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def history_for_product(product_id):
        return StockHistory.objects.filter(product_id=product_id).select_related("product")

    @staticmethod
    def history_for_order(order_id):
        return StockHistory.objects.filter(order_id=order_id).select_related("product")
