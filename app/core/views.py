"""
Core views providing infrastructure endpoints.

Views here are not part of the chat domain; they exist for load balancers
and container orchestration.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views.decorators.http import require_GET

logger = logging.getLogger(__name__)


@require_GET
def health_check(request):
    """
    Report database, cache and channel layer status.

    Only the database is critical. Cache and channel layer problems are
    reported but keep the response at 200 so that a Redis blip does not
    take every worker out of rotation.

    Returns:
        200 {"status": "healthy", ...} or 503 {"status": "unhealthy", ...}
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
        "channel_layer": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.exception("Health check: database unavailable")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    # IGNORE_EXCEPTIONS on the Redis cache turns failures into a missed read
    cache.set("health_check", "ok", timeout=1)
    health_status["cache"] = (
        "connected" if cache.get("health_check") == "ok" else "disconnected"
    )

    from channels.layers import get_channel_layer

    health_status["channel_layer"] = (
        "configured" if get_channel_layer() is not None else "missing"
    )

    status_code = 200 if is_healthy else 503
    return JsonResponse(health_status, status=status_code)
