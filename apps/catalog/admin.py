# apps/catalog/admin.py
from django.contrib import admin
from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "rate", "stock_quantity", "low_stock_threshold")
    search_fields = ("name", "description")
    list_filter = ("category",)
    # Stock moves only through the ledger so history stays complete
    readonly_fields = ("stock_quantity", "created_at", "updated_at")
