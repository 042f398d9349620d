from django.urls import path
from .views import (
    StockHistoryListAPIView,
    AdjustStockAPIView,
    RestockAPIView,
)

urlpatterns = [
    path('history/', StockHistoryListAPIView.as_view(), name='inventory-history'),
    path('adjust/', AdjustStockAPIView.as_view(), name='inventory-adjust'),
    path('restock/', RestockAPIView.as_view(), name='inventory-restock'),
]
