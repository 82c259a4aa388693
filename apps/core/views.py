"""
Liveness endpoint for load balancers and uptime checks.
"""
import logging
from django.core.cache import cache
from django.db import DatabaseError, connection
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

logger = logging.getLogger(__name__)

HEALTH_CHECK_KEY = 'teamflow:health'


def _check_database():
    """Return None when the store answers, otherwise an error line."""
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError:
        logger.error("Health check: database unreachable", exc_info=True)
        return "Database: unreachable"
    return None


def _check_cache():
    try:
        cache.set(HEALTH_CHECK_KEY, 'ok', timeout=10)
        readable = cache.get(HEALTH_CHECK_KEY) == 'ok'
    except Exception:
        # Redis and locmem raise unrelated client errors
        logger.error("Health check: cache unreachable", exc_info=True)
        return "Cache: unreachable"
    if not readable:
        return "Cache: check key not readable"
    return None


class HealthCheckView(APIView):
    """
    GET /v1/health

    200 when the database and cache both answer, 503 otherwise. Needs no
    credentials; a bad Authorization header is ignored.
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    CHECKS = (
        ('database', _check_database),
        ('cache', _check_cache),
    )

    @extend_schema(
        tags=['Operations'],
        summary="Health check",
        description="Check the database and cache.",
        responses={200: OpenApiTypes.OBJECT, 503: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        body = {'status': 'healthy'}
        errors = []

        for name, check in self.CHECKS:
            error = check()
            body[name] = 'unhealthy' if error else 'healthy'
            if error:
                errors.append(error)

        if not errors:
            return Response(body, status=status.HTTP_200_OK)

        body['status'] = 'unhealthy'
        body['errors'] = errors
        return Response(body, status=status.HTTP_503_SERVICE_UNAVAILABLE)
