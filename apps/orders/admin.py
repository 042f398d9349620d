from django.contrib import admin
from .models import Order, OrderItem, OrderStatusHistory


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('product', 'item_name', 'rate', 'quantity', 'subtotal')

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    readonly_fields = ('changed_at', 'old_status', 'new_status', 'changed_by', 'notes')

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Read-only: every change must go through OrderLifecycleService.
    """
    list_display = ('id', 'buyer_name', 'status', 'payment_status', 'total', 'final_bill_amount', 'created_at')
    list_filter = ('status', 'payment_status', 'created_at')
    search_fields = ('id', 'buyer_name', 'buyer_phone', 'tracking_number')

    inlines = [OrderItemInline, OrderStatusHistoryInline]

    fieldsets = (
        ('Order Details', {
            'fields': ('id', 'version', 'status', 'status_updated_at', 'total', 'created_at', 'updated_at')
        }),
        ('Buyer', {
            'fields': ('buyer_id', 'buyer_name', 'buyer_phone', 'buyer_address')
        }),
        ('Delivery Info', {
            'fields': (
                'delivery_address', 'latitude', 'longitude',
                'tracking_number', 'delivery_partner', 'estimated_delivery',
                'delivery_total_seconds', 'delivery_start_timestamp', 'delivery_time_minutes', 'start_time',
                'confirmed_by', 'delivered_by',
            )
        }),
        ('Billing', {
            'fields': ('final_bill_amount', 'payment_status', 'billed_by', 'billed_at', 'billing_notes')
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in Order._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
