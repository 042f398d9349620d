from rest_framework import viewsets, filters, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from .models import Product
from .serializers import ProductSerializer, ProductCreateSerializer, ProductUpdateSerializer
from .services import CatalogService


class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Product master list. Writes go through CatalogService so stock can
    never be edited here.
    """
    queryset = Product.objects.all()
    serializer_class = ProductSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ["category"]
    search_fields = ["name", "description"]

    def get_permissions(self):
        if self.action in ("create", "partial_update"):
            return [IsAdminUser()]
        return [IsAuthenticated()]

    def create(self, request):
        serializer = ProductCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        product = CatalogService.create_product(**serializer.validated_data)
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        serializer = ProductUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        product = CatalogService.update_product(pk, **serializer.validated_data)
        return Response(ProductSerializer(product).data)

    @action(detail=False, methods=["get"])
    def low_stock(self, request):
        stocks = CatalogService.low_stock_products()
        page = self.paginate_queryset(stocks)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)
