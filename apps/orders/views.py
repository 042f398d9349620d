from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response

from .history import status_history
from .selectors import (
    filter_orders,
    get_order,
    month_orders,
    orders_for_buyer,
    today_orders,
    week_orders,
)
from .serializers import (
    CancelOrderSerializer,
    ForceStatusSerializer,
    MarkProcessingSerializer,
    OnTheWaySerializer,
    OrderCreateSerializer,
    OrderEditSerializer,
    OrderSerializer,
    OrderStatusHistorySerializer,
    UpdateBillSerializer,
    VersionedActionSerializer,
)
from .services import OrderLifecycleService

BUYER_ACTIONS = ("list", "retrieve", "create", "history")


class OrderViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Staff see every order and drive the lifecycle; buyers see their own
    orders and can place new ones.

    Query params on list: status, from_date, to_date (yyyy-MM-dd).
    """
    serializer_class = OrderSerializer
    lookup_value_regex = r"\d+"

    def get_permissions(self):
        if self.action in BUYER_ACTIONS:
            return [IsAuthenticated()]
        return [IsAdminUser()]

    def get_queryset(self):
        params = self.request.query_params
        if self.request.user.is_staff:
            return filter_orders(params.get("status"), params.get("from_date"), params.get("to_date"))
        return orders_for_buyer(self.request.user.pk, params.get("status"))

    def _actor(self):
        return self.request.user.get_username()

    def _respond(self, order, code=status.HTTP_200_OK):
        return Response(OrderSerializer(get_order(order.pk)).data, status=code)

    def _paginated(self, queryset):
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def create(self, request):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        if not request.user.is_staff or data.get("buyer_id") is None:
            data["buyer_id"] = request.user.pk
        data["items"] = [dict(item) for item in data["items"]]

        order = OrderLifecycleService.create(**data)
        return self._respond(order, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def edit(self, request, pk=None):
        serializer = OrderEditSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        d = serializer.validated_data

        order = OrderLifecycleService.edit(
            pk,
            [dict(item) for item in d["items"]],
            delivery_address=d.get("delivery_address"),
            buyer_phone=d.get("buyer_phone"),
            actor=self._actor(),
            expected_version=d.get("expected_version"),
        )
        return self._respond(order)

    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        serializer = VersionedActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = OrderLifecycleService.confirm(
            pk, self._actor(), expected_version=serializer.validated_data.get("expected_version")
        )
        return self._respond(order)

    @action(detail=True, methods=["post"])
    def processing(self, request, pk=None):
        serializer = MarkProcessingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        d = serializer.validated_data

        order = OrderLifecycleService.mark_processing(
            pk,
            tracking_number=d.get("tracking_number"),
            delivery_partner=d.get("delivery_partner"),
            estimated_delivery=d.get("estimated_delivery"),
            actor=self._actor(),
            expected_version=d.get("expected_version"),
        )
        return self._respond(order)

    @action(detail=True, methods=["post"], url_path="on-the-way")
    def on_the_way(self, request, pk=None):
        serializer = OnTheWaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        d = serializer.validated_data

        order = OrderLifecycleService.set_on_the_way(
            pk, d["total_delivery_seconds"], actor=self._actor(), expected_version=d.get("expected_version")
        )
        return self._respond(order)

    @action(detail=True, methods=["post"])
    def bill(self, request, pk=None):
        serializer = UpdateBillSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        d = serializer.validated_data

        order = OrderLifecycleService.update_bill(
            pk,
            d["final_bill_amount"],
            notes=d.get("notes"),
            actor=self._actor(),
            expected_version=d.get("expected_version"),
        )
        return self._respond(order)

    @action(detail=True, methods=["post"])
    def deliver(self, request, pk=None):
        serializer = VersionedActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = OrderLifecycleService.mark_delivered(
            pk, self._actor(), expected_version=serializer.validated_data.get("expected_version")
        )
        return self._respond(order)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        d = serializer.validated_data

        order = OrderLifecycleService.cancel(
            pk, self._actor(), d.get("reason"), expected_version=d.get("expected_version")
        )
        return self._respond(order)

    @action(detail=True, methods=["post"], url_path="force-status")
    def force_status(self, request, pk=None):
        serializer = ForceStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        d = serializer.validated_data

        order = OrderLifecycleService.force_set_status(
            pk, d["status"], self._actor(), expected_version=d.get("expected_version")
        )
        return self._respond(order)

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        order = self.get_object()
        data = OrderStatusHistorySerializer(status_history(order.pk), many=True).data
        return Response(data)

    @action(detail=False, methods=["get"])
    def today(self, request):
        return self._paginated(today_orders())

    @action(detail=False, methods=["get"])
    def week(self, request):
        return self._paginated(week_orders())

    @action(detail=False, methods=["get"])
    def month(self, request):
        return self._paginated(month_orders())
