# apps/notifications/admin.py
from django.contrib import admin

from .models import AdminNotification, BuyerNotification, BuyerDevice


@admin.register(AdminNotification)
class AdminNotificationAdmin(admin.ModelAdmin):
    list_display = ("order", "customer_name", "total", "item_count", "is_read", "created_at")
    list_filter = ("is_read",)
    search_fields = ("customer_name", "order__id")
    readonly_fields = ("order", "customer_name", "total", "item_count", "read_at", "created_at", "updated_at")

    def has_add_permission(self, request):
        return False


@admin.register(BuyerNotification)
class BuyerNotificationAdmin(admin.ModelAdmin):
    list_display = (
        "buyer_id",
        "order",
        "title",
        "push_status",
        "is_read",
        "created_at",
        "sent_at",
    )
    list_filter = ("push_status", "is_read")
    search_fields = ("title", "message", "buyer_id")
    readonly_fields = (
        "buyer_id",
        "order",
        "title",
        "message",
        "data",
        "push_status",
        "provider_message_id",
        "error_message",
        "sent_at",
        "created_at",
        "updated_at",
    )

    def has_add_permission(self, request):
        return False


@admin.register(BuyerDevice)
class BuyerDeviceAdmin(admin.ModelAdmin):
    list_display = ("buyer_id", "token", "device_type", "is_active", "last_seen_at")
    list_filter = ("device_type", "is_active")
    search_fields = ("buyer_id", "token")
