# apps/catalog/services.py
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import F

from apps.utils.exceptions import NotFoundError, ValidationError
from apps.utils.utils import blank_to_none, money
from apps.utils.validators import parse_non_negative_int
from .models import Product

logger = logging.getLogger(__name__)

DESCRIPTION_MAX_LENGTH = 500

# Fields a catalog edit may touch. Stock goes through the ledger only.
EDITABLE_FIELDS = ("name", "category", "description", "low_stock_threshold", "rate")


class CatalogService:
    """
    Read side used by the order lifecycle (price/name snapshots, existence
    checks) plus product maintenance.
    """

    @staticmethod
    def get_product(product_id) -> Product:
        try:
            return Product.objects.get(pk=product_id)
        except (Product.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(f"Product not found with id: {product_id}")

    @staticmethod
    def get_products(product_ids) -> dict:
        """
        Bulk lookup. Raises NotFoundError naming the first missing id.
        """
        wanted = list(dict.fromkeys(product_ids))
        found = Product.objects.in_bulk(wanted)
        for pid in wanted:
            if pid not in found:
                raise NotFoundError(f"Product not found with id: {pid}")
        return found

    @staticmethod
    def list_products(category=None):
        qs = Product.objects.all()
        if category:
            if category not in Product.Category.values:
                raise ValidationError(f"Unknown category '{category}'.")
            qs = qs.filter(category=category)
        return qs

    @staticmethod
    def low_stock_products():
        return Product.objects.filter(stock_quantity__lte=F("low_stock_threshold")).order_by("stock_quantity", "name")

    @staticmethod
    def _clean(data: dict) -> dict:
        cleaned = {}
        if "name" in data:
            name = blank_to_none(data["name"])
            if not name:
                raise ValidationError("Product name is required.")
            cleaned["name"] = name
        if "category" in data:
            if data["category"] not in Product.Category.values:
                raise ValidationError(f"Unknown category '{data['category']}'.")
            cleaned["category"] = data["category"]
        if "description" in data:
            description = blank_to_none(data["description"])
            if description and len(description) > DESCRIPTION_MAX_LENGTH:
                raise ValidationError(
                    f"Product description must be at most {DESCRIPTION_MAX_LENGTH} characters"
                )
            cleaned["description"] = description
        if "low_stock_threshold" in data and data["low_stock_threshold"] is not None:
            cleaned["low_stock_threshold"] = parse_non_negative_int(
                data["low_stock_threshold"], "Low-stock threshold"
            )
        if "rate" in data:
            if data["rate"] is None:
                raise ValidationError("Product rate is required.")
            rate = money(data["rate"], "product rate")
            if rate < Decimal("0"):
                raise ValidationError("Product rate cannot be negative.")
            cleaned["rate"] = rate
        return cleaned

    @staticmethod
    @transaction.atomic
    def create_product(*, name, category, rate, description=None, low_stock_threshold=None, stock_quantity=0) -> Product:
        """
        Opening stock is written directly; every later change is a ledger entry.
        """
        stock_quantity = parse_non_negative_int(stock_quantity, "Opening stock")
        cleaned = CatalogService._clean({
            "name": name,
            "category": category,
            "rate": rate,
            "description": description,
            "low_stock_threshold": low_stock_threshold,
        })
        product = Product.objects.create(stock_quantity=stock_quantity, **cleaned)
        logger.info("Product created: %s (%s)", product.pk, product.name)
        return product

    @staticmethod
    @transaction.atomic
    def update_product(product_id, **changes) -> Product:
        if "stock_quantity" in changes:
            raise ValidationError("Stock changes must be recorded through the stock ledger.")
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown product fields: {', '.join(sorted(unknown))}")

        try:
            product = Product.objects.select_for_update().get(pk=product_id)
        except Product.DoesNotExist:
            raise NotFoundError(f"Product not found with id: {product_id}")

        cleaned = CatalogService._clean(changes)
        for field, value in cleaned.items():
            setattr(product, field, value)
        product.save(update_fields=[*cleaned.keys(), "updated_at"])
        return product
