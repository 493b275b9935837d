"""Liveness report for load balancers and the ops dashboard.

``db`` and ``broker`` decide the overall status; ``realtime`` is reported for
information only (it describes the worker that answered).
"""

from __future__ import annotations

import logging
from typing import Any

import redis
from django.conf import settings
from django.db import DatabaseError
from django.db import connection
from django.db import transaction
from django.http import JsonResponse
from django.utils import timezone

from proserv.payments.gateways import get_gateway
from proserv.realtime.presence import registry

logger = logging.getLogger(__name__)


def check_db() -> dict[str, Any]:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1;")
            cursor.fetchone()
    except DatabaseError as exc:
        logger.warning("Health check: database unreachable: %s", exc)
        return {"ok": False, "error": str(exc)}
    return {"ok": True, "vendor": connection.vendor}


def check_broker() -> dict[str, Any]:
    """Ping the Celery broker; in-memory brokers (tests, eager mode) always pass."""
    url = settings.CELERY_BROKER_URL or ""
    if not url.startswith(("redis://", "rediss://")):
        return {"ok": True, "backend": url.split("://", 1)[0] or "none"}
    try:
        redis.Redis.from_url(
            url,
            socket_timeout=0.5,
            socket_connect_timeout=0.5,
        ).ping()
    except redis.RedisError as exc:
        logger.warning("Health check: broker unreachable: %s", exc)
        return {"ok": False, "backend": "redis", "error": str(exc)}
    return {"ok": True, "backend": "redis"}


def check_payments() -> dict[str, Any]:
    try:
        gateway = get_gateway()
    except ImportError as exc:
        logger.error("Health check: payment gateway not importable: %s", exc)
        return {"ok": False, "error": str(exc)}
    return {"ok": True, "gateway": type(gateway).__name__}


@transaction.non_atomic_requests
def health(request):
    components = {
        "db": check_db(),
        "broker": check_broker(),
        "payments": check_payments(),
    }
    healthy = [c["ok"] for c in components.values()]
    if all(healthy):
        status = "ok"
    elif components["db"]["ok"]:
        status = "degraded"
    else:
        status = "down"

    return JsonResponse(
        {
            "status": status,
            "components": components,
            "realtime": registry.stats(),
            "timestamp": timezone.now().isoformat(),
        },
        status=200 if status == "ok" else 503,
    )
