from rest_framework import serializers
from .models import Order, OrderItem, OrderStatusHistory


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ['id', 'product_id', 'item_name', 'rate', 'quantity', 'subtotal']


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'version', 'status', 'status_display',
            'buyer_id', 'buyer_name', 'buyer_phone', 'buyer_address',
            'delivery_address', 'latitude', 'longitude',
            'total', 'items',
            'created_at', 'status_updated_at',
            'tracking_number', 'delivery_partner', 'estimated_delivery',
            'delivery_total_seconds', 'delivery_start_timestamp', 'delivery_time_minutes', 'start_time',
            'confirmed_by', 'delivered_by',
            'final_bill_amount', 'payment_status', 'billed_by', 'billed_at', 'billing_notes',
        ]


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ['id', 'order_id', 'old_status', 'new_status', 'changed_by', 'changed_at', 'notes']


# --- Input shapes. Business rules live in OrderLifecycleService. ---

class OrderItemInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField()
    item_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    rate = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)


class OrderCreateSerializer(serializers.Serializer):
    buyer_id = serializers.IntegerField(required=False)
    buyer_name = serializers.CharField(max_length=100)
    buyer_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    buyer_address = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    delivery_address = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    latitude = serializers.FloatField(required=False, allow_null=True)
    longitude = serializers.FloatField(required=False, allow_null=True)
    total = serializers.DecimalField(max_digits=10, decimal_places=2)
    items = OrderItemInputSerializer(many=True, allow_empty=True)


class VersionedActionSerializer(serializers.Serializer):
    expected_version = serializers.IntegerField(required=False, allow_null=True)


class OrderEditSerializer(VersionedActionSerializer):
    items = OrderItemInputSerializer(many=True, allow_empty=True)
    delivery_address = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    buyer_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)


class MarkProcessingSerializer(VersionedActionSerializer):
    tracking_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    delivery_partner = serializers.CharField(max_length=100, required=False, allow_blank=True)
    estimated_delivery = serializers.DateTimeField(required=False, allow_null=True)


class OnTheWaySerializer(VersionedActionSerializer):
    total_delivery_seconds = serializers.IntegerField()


class UpdateBillSerializer(VersionedActionSerializer):
    final_bill_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class CancelOrderSerializer(VersionedActionSerializer):
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ForceStatusSerializer(VersionedActionSerializer):
    status = serializers.CharField(max_length=20)
