# apps/inventory/tests.py
import threading
from unittest import mock, skipUnless

from django.contrib.auth import get_user_model
from django.db import connection
from django.test import TestCase, TransactionTestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase, APIClient

from apps.catalog.models import Product
from apps.catalog.services import CatalogService
from apps.utils.exceptions import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from apps.utils.uow import UnitOfWork
from .models import StockHistory
from .services import StockLedger

User = get_user_model()


class StockLedgerTests(TestCase):
    def setUp(self):
        self.water = CatalogService.create_product(
            name="Water 20L", category="water", rate="40.00", stock_quantity=10
        )
        self.soda = CatalogService.create_product(
            name="Soda", category="beverage", rate="25.00", stock_quantity=1
        )

    def _stock(self, product):
        product.refresh_from_db()
        return product.stock_quantity

    def test_deduct_records_before_and_after(self):
        entry = StockLedger.deduct(self.water.id, 3, order_id=None, actor="seller")

        self.assertEqual(self._stock(self.water), 7)
        self.assertEqual(entry.quantity_change, -3)
        self.assertEqual(entry.quantity_before, 10)
        self.assertEqual(entry.quantity_after, 7)
        self.assertEqual(entry.change_type, StockHistory.ChangeType.ORDER_CONFIRMED)
        self.assertEqual(entry.changed_by, "seller")

    def test_insufficient_stock_writes_nothing(self):
        with self.assertRaises(InsufficientStockError) as ctx:
            StockLedger.deduct(self.soda.id, 2, actor="seller")

        self.assertEqual(ctx.exception.available, 1)
        self.assertEqual(ctx.exception.requested, 2)
        self.assertEqual(self._stock(self.soda), 1)
        self.assertFalse(StockHistory.objects.exists())

    def test_non_positive_quantities_are_rejected(self):
        for qty in (0, -1):
            with self.assertRaises(ValidationError):
                StockLedger.deduct(self.water.id, qty, actor="seller")
            with self.assertRaises(ValidationError):
                StockLedger.restore(self.water.id, qty, actor="seller")
        self.assertEqual(self._stock(self.water), 10)

    def test_unknown_product(self):
        with self.assertRaises(NotFoundError):
            StockLedger.restock(987654, 1, actor="seller")

    def test_deduct_then_restore_round_trip(self):
        StockLedger.deduct(self.water.id, 4, actor="seller")
        entry = StockLedger.restore(self.water.id, 4, actor="seller")

        self.assertEqual(self._stock(self.water), 10)
        self.assertEqual(entry.change_type, StockHistory.ChangeType.ORDER_CANCELED)
        self.assertEqual(entry.quantity_before, 6)
        self.assertEqual(entry.quantity_after, 10)

    def test_manual_adjust_records_signed_delta(self):
        down = StockLedger.manual_adjust(self.water.id, 4, actor="auditor", notes="Cycle count")
        self.assertEqual(down.quantity_change, -6)
        self.assertEqual(self._stock(self.water), 4)

        up = StockLedger.manual_adjust(self.water.id, 9, actor="auditor")
        self.assertEqual(up.quantity_change, 5)
        self.assertEqual(up.quantity_before, 4)
        self.assertEqual(self._stock(self.water), 9)

    def test_manual_adjust_rejects_negative(self):
        with self.assertRaises(ValidationError):
            StockLedger.manual_adjust(self.water.id, -1, actor="auditor")

    def test_restock(self):
        entry = StockLedger.restock(self.soda.id, 24, actor="seller", notes="Truck")
        self.assertEqual(entry.change_type, StockHistory.ChangeType.RESTOCK)
        self.assertEqual(self._stock(self.soda), 25)

    def test_deduct_many_is_all_or_nothing(self):
        with self.assertRaises(InsufficientStockError):
            StockLedger.deduct_many(
                [(self.water.id, 2), (self.soda.id, 3)], order_id=None, actor="seller"
            )

        self.assertEqual(self._stock(self.water), 10)
        self.assertEqual(self._stock(self.soda), 1)
        self.assertFalse(StockHistory.objects.exists())

    def test_rolled_back_unit_discards_ledger_rows(self):
        with self.assertRaises(RuntimeError):
            with UnitOfWork() as uow:
                StockLedger.deduct(self.water.id, 5, actor="seller", uow=uow)
                raise RuntimeError("abort")

        self.assertEqual(self._stock(self.water), 10)
        self.assertFalse(StockHistory.objects.exists())

    def test_history_rows_are_append_only(self):
        entry = StockLedger.deduct(self.water.id, 1, actor="seller")

        entry.notes = "tampered"
        with self.assertRaises(TypeError):
            entry.save()
        with self.assertRaises(TypeError):
            entry.delete()

    def test_history_for_product_newest_first(self):
        StockLedger.deduct(self.water.id, 1, actor="seller")
        StockLedger.restock(self.water.id, 5, actor="seller")
        StockLedger.deduct(self.soda.id, 1, actor="seller")

        rows = list(StockLedger.history_for_product(self.water.id))
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0].change_type, StockHistory.ChangeType.RESTOCK)
        for row in rows:
            self.assertEqual(row.quantity_after, row.quantity_before + row.quantity_change)

    def test_repeated_product_lines_move_once(self):
        entries = StockLedger.deduct_many(
            [(self.water.id, 2), (self.soda.id, 1), (self.water.id, 3)], order_id=None, actor="seller"
        )

        self.assertEqual([e.product_id for e in entries], sorted([self.water.id, self.soda.id]))
        water_entry = next(e for e in entries if e.product_id == self.water.id)
        self.assertEqual(water_entry.quantity_change, -5)
        self.assertEqual(self._stock(self.water), 5)


class StockLedgerConcurrencyTests(TransactionTestCase):
    """
    Two writers on one product: the second one must build on the first
    one's committed value, never on what it read earlier.
    """

    def setUp(self):
        self.water = CatalogService.create_product(
            name="Water 20L", category="water", rate="40.00", stock_quantity=10
        )

    def _stock(self):
        self.water.refresh_from_db()
        return self.water.stock_quantity

    def assertHistoryChain(self, start, end):
        rows = list(StockHistory.objects.filter(product=self.water).order_by("id"))
        self.assertTrue(rows)
        self.assertEqual(rows[0].quantity_before, start)
        for prev, row in zip(rows, rows[1:]):
            self.assertEqual(row.quantity_before, prev.quantity_after)
        for row in rows:
            self.assertEqual(row.quantity_after, row.quantity_before + row.quantity_change)
        self.assertEqual(rows[-1].quantity_after, end)

    def test_stale_reader_does_not_lose_the_other_deduction(self):
        stale = Product.objects.get(pk=self.water.pk)
        StockLedger.deduct(self.water.id, 3, actor="first")

        with mock.patch.object(StockLedger, "_lock", return_value=stale):
            entry = StockLedger.deduct(self.water.id, 4, actor="second")

        self.assertEqual(entry.quantity_before, 7)
        self.assertEqual(entry.quantity_after, 3)
        self.assertEqual(self._stock(), 3)
        self.assertHistoryChain(10, 3)

    def test_stale_reader_cannot_overdraw(self):
        stale = Product.objects.get(pk=self.water.pk)
        StockLedger.deduct(self.water.id, 8, actor="first")

        with mock.patch.object(StockLedger, "_lock", return_value=stale):
            with self.assertRaises(InsufficientStockError) as ctx:
                StockLedger.deduct(self.water.id, 5, actor="second")

        self.assertEqual(ctx.exception.available, 2)
        self.assertEqual(self._stock(), 2)
        self.assertEqual(StockHistory.objects.filter(product=self.water).count(), 1)

    def test_stale_manual_adjust_conflicts(self):
        stale = Product.objects.get(pk=self.water.pk)
        StockLedger.deduct(self.water.id, 3, actor="first")

        with mock.patch.object(StockLedger, "_lock", return_value=stale):
            with self.assertRaises(ConflictError):
                StockLedger.manual_adjust(self.water.id, 15, actor="auditor")

        self.assertEqual(self._stock(), 7)
        self.assertHistoryChain(10, 7)

    @skipUnless(connection.vendor == "postgresql", "needs row-level locks across connections")
    def test_parallel_deductions_serialize(self):
        workers, per_worker = 4, 2
        barrier = threading.Barrier(workers)
        errors = []

        def deduct():
            try:
                barrier.wait()
                for _ in range(per_worker):
                    StockLedger.deduct(self.water.id, 1, actor="worker")
            except Exception as exc:
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=deduct) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(self._stock(), 10 - workers * per_worker)
        self.assertHistoryChain(10, 10 - workers * per_worker)


class InventoryAPITests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.staff = User.objects.create_user(username="seller", password="testpass", is_staff=True)
        self.normal = User.objects.create_user(username="buyer", password="testpass")
        self.water = CatalogService.create_product(
            name="Water 20L", category="water", rate="40.00", stock_quantity=10
        )

    def test_adjust_and_filter_history(self):
        self.client.force_authenticate(self.staff)
        resp = self.client.post(
            reverse("inventory-adjust"),
            {"product_id": self.water.id, "new_quantity": 7, "notes": "Count"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["quantity_change"], -3)
        self.assertEqual(resp.data["changed_by"], "seller")

        resp = self.client.get(reverse("inventory-history"), {"product": self.water.id})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["count"], 1)

    def test_restock_unknown_product_is_404(self):
        self.client.force_authenticate(self.staff)
        resp = self.client.post(
            reverse("inventory-restock"), {"product_id": 4040, "quantity": 3}, format="json"
        )
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["code"], "not_found")

    def test_non_staff_cannot_adjust(self):
        self.client.force_authenticate(self.normal)
        resp = self.client.post(
            reverse("inventory-adjust"), {"product_id": self.water.id, "new_quantity": 1}, format="json"
        )
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
