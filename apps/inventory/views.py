from rest_framework import generics, views, status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from .models import StockHistory
from .serializers import (
    StockHistorySerializer,
    StockAdjustmentSerializer,
    RestockSerializer,
)
from .services import StockLedger


def _actor(request):
    return request.user.get_username() or "seller"


class StockHistoryListAPIView(generics.ListAPIView):
    """
    Ledger browser: ?product=<id>&order=<id>&change_type=<type>
    """
    queryset = StockHistory.objects.select_related('product').all()
    serializer_class = StockHistorySerializer
    permission_classes = [IsAdminUser]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['product', 'order', 'change_type']


class AdjustStockAPIView(views.APIView):
    """
    Manual override after a physical count.
    """
    permission_classes = [IsAdminUser]

    def post(self, request):
        serializer = StockAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        d = serializer.validated_data
        entry = StockLedger.manual_adjust(
            d['product_id'],
            d['new_quantity'],
            actor=_actor(request),
            notes=d.get('notes', ''),
        )
        return Response(StockHistorySerializer(entry).data, status=status.HTTP_200_OK)


class RestockAPIView(views.APIView):
    permission_classes = [IsAdminUser]

    def post(self, request):
        serializer = RestockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        d = serializer.validated_data
        entry = StockLedger.restock(
            d['product_id'],
            d['quantity'],
            actor=_actor(request),
            notes=d.get('notes', ''),
        )
        return Response(StockHistorySerializer(entry).data, status=status.HTTP_201_CREATED)
