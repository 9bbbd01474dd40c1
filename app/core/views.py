"""
Infrastructure endpoints. Domain endpoints live in their own apps.
"""

import logging

from django.core.cache import cache
from django.db import connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def _database_ok() -> bool:
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
        return cursor.fetchone() == (1,)


def _cache_ok() -> bool:
    cache.set("health_check", "ok", timeout=1)
    return cache.get("health_check") == "ok"


def health_check(request):
    """
    Liveness check for load balancers.

    Returns 503 only when the database is unreachable. The cache backs the
    payout locks and sweep stats, so it is reported but not fatal.
    """
    checks = {}
    for name, check in (("database", _database_ok), ("cache", _cache_ok)):
        try:
            checks[name] = "connected" if check() else "disconnected"
        except Exception:
            logger.warning("Health check failed: %s", name, exc_info=True)
            checks[name] = "disconnected"

    healthy = checks["database"] == "connected"
    return JsonResponse(
        {"status": "healthy" if healthy else "unhealthy", **checks},
        status=200 if healthy else 503,
    )
