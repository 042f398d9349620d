# apps/analytics/views.py
from rest_framework import permissions, views
from rest_framework.response import Response

from .serializers import DashboardStatsSerializer
from .services import dashboard_stats


class DashboardStatsView(views.APIView):
    """
    GET /api/v1/analytics/dashboard/?from_date=2026-03-04&to_date=2026-03-09
    """
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):
        stats = dashboard_stats(
            request.query_params.get("from_date"),
            request.query_params.get("to_date"),
        )
        return Response(DashboardStatsSerializer(stats).data)
