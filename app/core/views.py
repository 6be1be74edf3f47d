"""
Infrastructure endpoints that sit outside the business API.

GET /health/ reports whether the ledger store (PostgreSQL) and the cache
(Redis) answer. Load balancers take the instance out of rotation on 503.
"""

from __future__ import annotations

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views.decorators.http import require_GET

logger = logging.getLogger(__name__)

HEALTH_CACHE_KEY = "health_check"


def _database_ok() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError:
        logger.warning("Health check: database unreachable", exc_info=True)
        return False
    return True


def _cache_ok() -> bool:
    try:
        cache.set(HEALTH_CACHE_KEY, "ok", timeout=5)
        return cache.get(HEALTH_CACHE_KEY) == "ok"
    except Exception:  # noqa: BLE001 - redis client errors vary by backend
        logger.warning("Health check: cache unreachable", exc_info=True)
        return False


@require_GET
def health_check(request):
    """
    Report component health.

    The database is required; a cache outage degrades the response but
    keeps it at 200 since settlements never read through the cache.

    Example Response:
        {"status": "healthy", "database": "connected", "cache": "connected"}
    """
    database_ok = _database_ok()
    cache_ok = _cache_ok()

    if not database_ok:
        overall = "unhealthy"
    elif not cache_ok:
        overall = "degraded"
    else:
        overall = "healthy"

    payload = {
        "status": overall,
        "database": "connected" if database_ok else "disconnected",
        "cache": "connected" if cache_ok else "disconnected",
    }
    return JsonResponse(payload, status=200 if database_ok else 503)
