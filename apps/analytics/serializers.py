# apps/analytics/serializers.py
from rest_framework import serializers


class DashboardStatsSerializer(serializers.Serializer):
    total_orders = serializers.IntegerField()
    pending_orders = serializers.IntegerField()
    delivered_orders = serializers.IntegerField()
    total_revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    products_count = serializers.IntegerField()
    date_range_label = serializers.CharField()
    today_orders = serializers.IntegerField()
