"""
Core views providing infrastructure endpoints.

Health checks for the settlement service: the database holds settlement
state and Redis holds the payout locks, so both are reported.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - cache: "connected" or "disconnected"

    HTTP Status Codes:
        200: Database reachable
        503: Database unreachable

    A cache outage is reported but does not fail the check: without Redis
    payouts are refused (no lock can be taken), while reads and webhooks
    keep working.

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "cache": "connected"
        }
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.error("Health check: database unreachable", exc_info=True)
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        cache.set("health_check", "ok", timeout=1)
        connected = cache.get("health_check") == "ok"
    except Exception:
        logger.warning("Health check: cache unreachable", exc_info=True)
        connected = False
    health_status["cache"] = "connected" if connected else "disconnected"

    return JsonResponse(health_status, status=200 if is_healthy else 503)
