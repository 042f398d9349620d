# apps/inventory/admin.py
from django.contrib import admin
from .models import StockHistory


@admin.register(StockHistory)
class StockHistoryAdmin(admin.ModelAdmin):
    list_display = ('changed_at', 'product', 'change_type', 'quantity_change', 'quantity_after', 'order', 'changed_by')
    list_filter = ('change_type', 'changed_at')
    search_fields = ('product__name', 'notes', 'changed_by')

    def has_add_permission(self, request):
        return False  # Ledger rows are written by StockLedger only

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
