# apps/notifications/serializers.py
from rest_framework import serializers

from .models import AdminNotification, BuyerNotification, BuyerDevice


class AdminNotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = AdminNotification
        fields = [
            "id",
            "order_id",
            "customer_name",
            "total",
            "item_count",
            "is_read",
            "read_at",
            "created_at",
        ]


class BuyerNotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = BuyerNotification
        fields = [
            "id",
            "order_id",
            "title",
            "message",
            "data",
            "push_status",
            "is_read",
            "read_at",
            "created_at",
            "sent_at",
        ]


class BuyerDeviceSerializer(serializers.ModelSerializer):
    class Meta:
        model = BuyerDevice
        fields = ["id", "token", "device_type", "is_active", "last_seen_at"]
        read_only_fields = ["is_active", "last_seen_at"]
        # Re-registering a known token is an update, not a conflict
        extra_kwargs = {"token": {"validators": []}}
