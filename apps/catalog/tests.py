# apps/catalog/tests.py
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase, APIClient

from apps.utils.exceptions import NotFoundError, ValidationError
from .models import Product
from .services import CatalogService

User = get_user_model()


class CatalogServiceTests(TestCase):
    def setUp(self):
        self.water = CatalogService.create_product(
            name="Mineral Water 1L", category="water", rate="15.00", stock_quantity=10
        )

    def test_create_defaults_threshold_and_normalizes_description(self):
        product = CatalogService.create_product(
            name="Lemon Soda", category="beverage", rate="30", description="   "
        )
        self.assertEqual(product.low_stock_threshold, 10)
        self.assertIsNone(product.description)
        self.assertEqual(product.rate, Decimal("30.00"))
        self.assertEqual(product.stock_quantity, 0)

    def test_description_length_is_bounded(self):
        with self.assertRaises(ValidationError):
            CatalogService.create_product(
                name="Long", category="water", rate="1.00", description="x" * 501
            )

    def test_malformed_numbers_are_validation_errors(self):
        with self.assertRaises(ValidationError):
            CatalogService.create_product(name="Cola", category="beverage", rate="abc")
        with self.assertRaises(ValidationError):
            CatalogService.create_product(name="Cola", category="beverage", rate="NaN")
        with self.assertRaises(ValidationError):
            CatalogService.create_product(name="Cola", category="beverage", rate="20", stock_quantity="lots")
        with self.assertRaises(ValidationError):
            CatalogService.update_product(self.water.id, low_stock_threshold="abc")
        self.assertFalse(Product.objects.filter(name="Cola").exists())

    def test_get_product_missing(self):
        with self.assertRaises(NotFoundError):
            CatalogService.get_product(999999)

    def test_get_products_reports_missing_id(self):
        with self.assertRaises(NotFoundError):
            CatalogService.get_products([self.water.id, 424242])

    def test_update_refuses_stock(self):
        with self.assertRaises(ValidationError):
            CatalogService.update_product(self.water.id, stock_quantity=99)

        updated = CatalogService.update_product(self.water.id, rate="16.5")
        self.assertEqual(updated.rate, Decimal("16.50"))
        self.assertEqual(updated.stock_quantity, 10)

    def test_low_stock_products(self):
        CatalogService.create_product(name="Cola", category="beverage", rate="20", stock_quantity=3)
        names = [p.name for p in CatalogService.low_stock_products()]
        self.assertIn("Cola", names)
        self.assertIn("Mineral Water 1L", names)  # 10 <= threshold 10

        self.assertTrue(Product.objects.get(name="Cola").is_low_stock)


class ProductAPITests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.staff = User.objects.create_user(username="staff", password="testpass", is_staff=True)
        self.normal = User.objects.create_user(username="buyer", password="testpass")

    def test_staff_can_create_product(self):
        self.client.force_authenticate(self.staff)
        resp = self.client.post(
            reverse("product-list"),
            {"name": "Soda", "category": "beverage", "rate": "25.00", "stock_quantity": 4},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["stock_quantity"], 4)

    def test_normal_user_cannot_create_product(self):
        self.client.force_authenticate(self.normal)
        resp = self.client.post(
            reverse("product-list"),
            {"name": "Soda", "category": "beverage", "rate": "25.00"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_missing_product_returns_404(self):
        self.client.force_authenticate(self.staff)
        resp = self.client.patch(
            reverse("product-detail", kwargs={"pk": 9999}), {"rate": "1.00"}, format="json"
        )
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
