# apps/utils/views.py
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from django.conf import settings


class ServerInfoView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({
            "app_name": settings.PROJECT_NAME,
            "debug": settings.DEBUG,
            "time_zone": settings.TIME_ZONE,
        })


class GlobalConfigView(APIView):
    """
    Pricing constants the storefront needs to show the same total the server computes.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({
            "tax_rate": str(settings.ORDER_TAX_RATE),
            "delivery_fee": str(settings.ORDER_DELIVERY_FEE),
            "low_stock_threshold": settings.DEFAULT_LOW_STOCK_THRESHOLD,
        })
