from rest_framework import serializers
from .models import StockHistory


class StockHistorySerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = StockHistory
        fields = [
            'id', 'product_id', 'product_name', 'order_id',
            'change_type', 'quantity_change',
            'quantity_before', 'quantity_after',
            'changed_by', 'changed_at', 'notes',
        ]


class StockAdjustmentSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    new_quantity = serializers.IntegerField(min_value=0)
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True)


class RestockSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True)
