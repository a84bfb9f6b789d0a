from __future__ import annotations

"""
Idempotency decorator for DRF views.

`@idempotent` de-duplicates retried requests (network retries, double-clicked
upload buttons) by persisting and replaying the first response for:

    (user_id, key, method, path, body_hash)

Where:
- `user_id` is the authenticated user performing the request.
- `key` is the `Idempotency-Key` header value supplied by the client.
- `method` and `path` identify the endpoint.
- `body_hash` is a SHA-256 of the raw request body (or parsed data fallback).

Operational notes
-----------------
- Requests without the header, and anonymous requests, run normally.
- Server errors (5xx) are never stored, so a retry after a crash re-executes.
- On a race to insert the first row, the loser handles `IntegrityError` by loading
  and returning the stored response.
- `manage.py cleanup_idempotency` prunes old rows.

Security & correctness
----------------------
- Persisting the response binds it to `user_id`; another user with the same header
  will not see that user's data.
- The body hash prevents accidental replays if the same key is reused with a
  different file or payload.
"""

import hashlib
import json
import logging
from functools import wraps
from typing import Any, Callable, Tuple

from django.db import IntegrityError, transaction
from rest_framework.request import Request
from rest_framework.response import Response

logger = logging.getLogger(__name__)


def _body_hash_from_request(request: Request) -> str:
    """Compute a deterministic SHA-256 of the request body.

    PERF:
        # PERF: Hash `request.body` directly; do not reparse large uploads.
    """
    try:
        raw = request.body or b""
    except Exception:
        # WHY: once a multipart stream was consumed `.body` is unavailable; fall
        # back to a canonical dump of the parsed form fields and file names.
        parts = {k: request.data.getlist(k) if hasattr(request.data, "getlist") else request.data[k]
                 for k in request.data}
        files = {k: [getattr(f, "name", ""), getattr(f, "size", 0)] for k, f in request.FILES.items()}
        raw = json.dumps({"data": parts, "files": files}, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def _serialize_response(resp: Response) -> Tuple[int, str, Any]:
    """Extract (status_code, content_type, body) from a DRF response."""
    status_code = int(resp.status_code)
    content_type = resp.get("Content-Type") or "application/json"
    body = getattr(resp, "data", None)
    if body is None and getattr(resp, "content", None):
        body = resp.content.decode("utf-8")
    return status_code, content_type, body


def _rebuild_response(record) -> Response:
    """Reconstruct a DRF Response from a stored `IdempotencyKey` row.

    NOTE:
        Only the status and body are stored; headers are regenerated by the
        normal middleware chain (request id, language).
    """
    resp = Response(record.response_json, status=record.status_code)
    resp["Idempotent-Replayed"] = "true"
    return resp


def idempotent(view_fn: Callable) -> Callable:
    """Decorator providing idempotent semantics for DRF views and viewset actions.

    Behavior:
        - With an `Idempotency-Key` header from an authenticated user, replay a
          stored response matching (user, key, method, path, body_hash).
        - Otherwise execute the view and persist the response atomically. On an
          insert race, load and return the winner's row instead.

    Security:
        # SECURITY: Lookups are always scoped to `user_id`.
    """
    from core.models import IdempotencyKey

    @wraps(view_fn)
    def _wrapped(self, request: Request, *args, **kwargs):
        key = request.headers.get("Idempotency-Key")
        user = getattr(request, "user", None)
        if not key or user is None or not user.is_authenticated:
            return view_fn(self, request, *args, **kwargs)

        lookup = {
            "user_id": user.id,
            "key": key[:200],
            "method": request.method.upper(),
            "path": request.path,
            "body_hash": _body_hash_from_request(request),
        }

        record = IdempotencyKey.objects.filter(**lookup).first()
        if record is not None:
            logger.info("Replaying idempotent response for key=%s path=%s", lookup["key"], lookup["path"])
            return _rebuild_response(record)

        resp = view_fn(self, request, *args, **kwargs)
        status_code, content_type, body = _serialize_response(resp)
        if status_code >= 500:
            return resp

        try:
            with transaction.atomic():
                IdempotencyKey.objects.create(
                    **lookup,
                    status_code=status_code,
                    content_type=content_type,
                    response_json=body,
                )
        except IntegrityError:
            # Race: another request stored the row first; replay it.
            record = IdempotencyKey.objects.filter(**lookup).first()
            if record is not None:
                return _rebuild_response(record)
        return resp

    return _wrapped
