# apps/notifications/urls.py
from django.urls import path

from .views import (
    AdminNotificationClearView,
    AdminNotificationListView,
    AdminNotificationMarkReadView,
    AdminUnreadCountView,
    BuyerDeviceRegisterView,
    BuyerNotificationListView,
    BuyerNotificationMarkReadView,
    BuyerUnreadCountView,
)

urlpatterns = [
    path("", BuyerNotificationListView.as_view(), name="notification-list"),
    path("unread-count/", BuyerUnreadCountView.as_view(), name="notification-unread-count"),
    path("<int:pk>/read/", BuyerNotificationMarkReadView.as_view(), name="notification-mark-read"),
    path("devices/", BuyerDeviceRegisterView.as_view(), name="notification-fcm-register"),

    path("admin/", AdminNotificationListView.as_view(), name="admin-notification-list"),
    path("admin/unread-count/", AdminUnreadCountView.as_view(), name="admin-notification-unread-count"),
    path("admin/<int:pk>/read/", AdminNotificationMarkReadView.as_view(), name="admin-notification-mark-read"),
    path("admin/read-all/", AdminNotificationMarkReadView.as_view(), name="admin-notification-mark-all-read"),
    path("admin/clear/", AdminNotificationClearView.as_view(), name="admin-notification-clear"),
]
