"""Core utility views (unauthenticated).

Currently exposes:
- `health`: lightweight readiness endpoint that checks DB connectivity and
  returns a minimal JSON payload. Intended for load balancers/k8s probes.

Security
--------
- Public; the payload contains no tree data and no per-request state.
"""

import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.utils.timezone import now

logger = logging.getLogger(__name__)


def health(request):
    """
    Lightweight health endpoint (no auth).

    Returns:
        200 JSON when the database is reachable; 503 JSON when the connection
        check raises.
    """
    status = 200
    payload = {
        "app": "familytree",
        "time": now().isoformat(),
        "db": "ok",
    }
    try:
        connection.ensure_connection()
    except DatabaseError as exc:
        logger.warning("Health check failed: %s", exc)
        payload["db"] = "down"
        payload["error"] = str(exc)
        status = 503
    return JsonResponse(payload, status=status)
