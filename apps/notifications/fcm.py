# apps/notifications/fcm.py
import logging

import firebase_admin
from firebase_admin import credentials, messaging
from django.conf import settings

logger = logging.getLogger(__name__)


def get_app():
    """
    Firebase app from FIREBASE_CREDENTIALS (parsed JSON), initialised once.
    None when push is not configured.
    """
    if not settings.FIREBASE_CREDENTIALS:
        return None
    try:
        return firebase_admin.get_app()
    except ValueError:
        app = firebase_admin.initialize_app(credentials.Certificate(settings.FIREBASE_CREDENTIALS))
        logger.info("Firebase initialized successfully (via JSON Config).")
        return app


def push_enabled() -> bool:
    return get_app() is not None


def send_push_to_device(device, title: str, body: str, data: dict | None = None) -> str | None:
    """
    Fire a single push notification to given device.
    Returns provider message id, or None when nothing was sent.
    Transport errors propagate so the caller can retry.
    """
    app = get_app()
    if app is None:
        logger.debug("Skipping push: Firebase not configured.")
        return None

    if not device.is_active:
        logger.info("Skipping push to inactive device %s", device.id)
        return None

    message = messaging.Message(
        token=device.token,
        notification=messaging.Notification(title=title, body=body),
        # FCM data values must be strings
        data={k: str(v) for k, v in (data or {}).items()},
        android=messaging.AndroidConfig(priority="high"),
        apns=messaging.APNSConfig(headers={"apns-priority": "10"}),
    )

    try:
        response = messaging.send(message, app=app)
    except messaging.UnregisteredError:
        logger.info("FCM token for device %s is no longer registered; deactivating.", device.id)
        device.is_active = False
        device.save(update_fields=["is_active", "updated_at"])
        return None

    logger.info("FCM push sent to device %s: %s", device.id, response)
    return response
