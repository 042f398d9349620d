# apps/catalog/serializers.py
from rest_framework import serializers
from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "category",
            "description",
            "stock_quantity",
            "low_stock_threshold",
            "rate",
            "is_low_stock",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["stock_quantity", "created_at", "updated_at"]


class ProductCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    category = serializers.ChoiceField(choices=Product.Category.choices)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    rate = serializers.DecimalField(max_digits=10, decimal_places=2)
    low_stock_threshold = serializers.IntegerField(required=False, min_value=0)
    stock_quantity = serializers.IntegerField(required=False, min_value=0, default=0)


class ProductUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, required=False)
    category = serializers.ChoiceField(choices=Product.Category.choices, required=False)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    rate = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)
    low_stock_threshold = serializers.IntegerField(required=False, min_value=0)
