# apps/notifications/views.py
from django.utils import timezone

from rest_framework import generics, status, views, permissions
from rest_framework.response import Response

from . import services
from .models import BuyerDevice
from .serializers import (
    AdminNotificationSerializer,
    BuyerNotificationSerializer,
    BuyerDeviceSerializer,
)


def _unread_only(request):
    return request.query_params.get("unread", "").lower() in ("1", "true", "yes")


class BuyerNotificationListView(generics.ListAPIView):
    """
    GET /api/v1/notifications/?unread=true
    """
    serializer_class = BuyerNotificationSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return services.buyer_notifications(self.request.user.pk, _unread_only(self.request))


class BuyerUnreadCountView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response({"unread": services.unread_buyer_count(request.user.pk)})


class BuyerNotificationMarkReadView(views.APIView):
    """
    POST /api/v1/notifications/<id>/read/
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        notification = services.mark_buyer_read(pk, request.user.pk)
        return Response(BuyerNotificationSerializer(notification).data)


class BuyerDeviceRegisterView(views.APIView):
    """
    Register/update FCM Device token for current user.

    POST /api/v1/notifications/devices/
    body: { "token": "...", "device_type": "android|ios|web" }
    """

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = BuyerDeviceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        device, _ = BuyerDevice.objects.update_or_create(
            token=serializer.validated_data["token"],
            defaults={
                "buyer_id": request.user.pk,
                "device_type": serializer.validated_data.get("device_type", BuyerDevice.DeviceType.ANDROID),
                "is_active": True,
                "last_seen_at": timezone.now(),
            },
        )
        return Response(BuyerDeviceSerializer(device).data, status=status.HTTP_200_OK)


class AdminNotificationListView(generics.ListAPIView):
    """
    GET /api/v1/notifications/admin/?unread=true
    """
    serializer_class = AdminNotificationSerializer
    permission_classes = [permissions.IsAdminUser]

    def get_queryset(self):
        return services.admin_notifications(_unread_only(self.request))


class AdminUnreadCountView(views.APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):
        return Response({"unread": services.unread_admin_count()})


class AdminNotificationMarkReadView(views.APIView):
    """
    POST /api/v1/notifications/admin/<id>/read/
    POST /api/v1/notifications/admin/read-all/
    """
    permission_classes = [permissions.IsAdminUser]

    def post(self, request, pk=None):
        if pk is None:
            updated = services.mark_all_admin_read()
            return Response({"status": "all_read", "updated": updated})
        notification = services.mark_admin_read(pk)
        return Response(AdminNotificationSerializer(notification).data)


class AdminNotificationClearView(views.APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        deleted = services.clear_admin_notifications()
        return Response({"status": "cleared", "deleted": deleted})
