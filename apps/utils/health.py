import logging

from django.db import connection
from django.http import JsonResponse

from config.celery import app as celery_app

logger = logging.getLogger(__name__)


def _check_db():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")


def _check_broker():
    with celery_app.connection_for_write() as conn:
        conn.ensure_connection(max_retries=1)


CHECKS = (
    ("db", _check_db),
    ("broker", _check_broker),
)


def health_check(request):
    """
    DB is required; broker down only degrades push delivery.
    """
    components = {name: "unknown" for name, _ in CHECKS}
    for name, check in CHECKS:
        try:
            check()
            components[name] = "ok"
        except Exception as e:
            logger.warning("Health check %s failed: %s", name, e)
            components[name] = "error"

    if components["db"] != "ok":
        return JsonResponse({"status": "error", "components": components}, status=503)
    overall = "ok" if all(v == "ok" for v in components.values()) else "degraded"
    return JsonResponse({"status": overall, "components": components}, status=200)
