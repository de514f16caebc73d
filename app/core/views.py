"""
Core views providing infrastructure endpoints.

This module contains views that are not part of the settlement domain but are
essential for running it, such as health checks.
"""

from django.db import connection
from django.http import JsonResponse
from django_redis import get_redis_connection


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    Used by Docker health checks, Kubernetes probes and load balancers.

    Components:
        - database: the ledger store. Settlement cannot run without it,
          so a failure here marks the service unhealthy (HTTP 503).
        - lock_backend: the Redis server behind the sweeper lock and the
          Celery broker. A failure is reported but the API stays healthy,
          since confirmations and withdrawals do not need it.

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "lock_backend": "connected"
        }
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "lock_backend": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        get_redis_connection("default").ping()
        health_status["lock_backend"] = "connected"
    except Exception:
        # Non-Redis cache backends raise NotImplementedError here
        health_status["lock_backend"] = "disconnected"

    return JsonResponse(health_status, status=200 if is_healthy else 503)
