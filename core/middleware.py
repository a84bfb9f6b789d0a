"""
Core middleware for request safety, localization and observability.

Components
----------
- `RequestSizeLimitMiddleware`:
    * Rejects large request bodies early with a pre-rendered 413 JSON response.
    * Applies to POST/PUT/PATCH only and relies on `Content-Length` when present.
    * Limit is configurable via `MAX_REQUEST_BYTES` (default 2,000,000 bytes).
    * GEDCOM uploads are allowed up to `MAX_IMPORT_BYTES` instead; the import
      view applies its own size check on the uploaded file.

- `UserLanguageMiddleware`:
    * Runs after authentication and activates the signed-in user's `language`
      preference when it names a configured locale.
    * Advertises the active locale in `Content-Language`.

- `RequestIDLogMiddleware`:
    * Reads `X-Request-ID` (or generates one) and reflects it in the response.
    * Stores the id in a contextvar for use by `core.logging.RequestIDFilter`.
    * Logs one structured line per request including latency (ms) and user id.

Security & UX
-------------
- The request-size rejection uses a DRF `Response` rendered to JSON so tests and
  clients get consistent error shapes. CSRF remains enabled upstream.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Callable, Optional

from django.conf import settings
from django.http import HttpRequest, HttpResponse
from django.utils import translation
from rest_framework.renderers import JSONRenderer
from rest_framework.response import Response

from .logging import request_id_var

logger = logging.getLogger("familytree.request")

# Allow simple, safe request-id tokens coming from clients
_ALLOWED_CHARS = re.compile(r"^[A-Za-z0-9._\-]{1,200}$")

# Upload endpoints that carry their own (larger) byte cap.
_IMPORT_PATH = re.compile(r"^/api/trees/[-\w]+/import/$")


def _coerce_request_id(raw: str | None) -> str:
    """
    Coerce a client-provided request id to a safe token, or generate a new one.
    """
    if raw and _ALLOWED_CHARS.match(raw):
        return raw
    # uuid4 hex (no hyphens) to keep it compact and URL/header safe
    return uuid.uuid4().hex


def _too_large(max_bytes: int) -> Response:
    """Build a rendered DRF 413 so APIClient exposes both `.data` and `.content`."""
    payload = {
        "detail": f"Request entity too large. Max {max_bytes} bytes.",
        "code": "request_too_large",
        "max_bytes": max_bytes,
    }
    resp = Response(payload, status=413)
    resp.accepted_renderer = JSONRenderer()
    resp.accepted_media_type = "application/json"
    resp.renderer_context = {}
    resp.render()
    return resp


class RequestSizeLimitMiddleware:
    """
    Reject overly large request bodies with 413, before any parsing.

    - Uses Content-Length if present; if missing or unparsable we allow through.
    - Applies to POST/PUT/PATCH only.
    - Configured via settings.MAX_REQUEST_BYTES (default: 2_000_000), or
      settings.MAX_IMPORT_BYTES for GEDCOM import uploads.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def _limit_for(self, request: HttpRequest) -> int:
        # Read settings per request so `override_settings` applies in tests.
        if _IMPORT_PATH.match(request.path):
            # Leave a little room for the multipart envelope around the file.
            return int(getattr(settings, "MAX_IMPORT_BYTES", 20_000_000)) + 64 * 1024
        return int(getattr(settings, "MAX_REQUEST_BYTES", 2_000_000))

    def __call__(self, request: HttpRequest) -> HttpResponse:
        method = request.method.upper()
        max_bytes = self._limit_for(request)
        if method in {"POST", "PUT", "PATCH"} and max_bytes > 0:
            raw_len: Optional[str] = request.META.get("CONTENT_LENGTH")
            try:
                content_length = int(raw_len) if raw_len else None
            except ValueError:
                content_length = None

            if content_length is not None and content_length > max_bytes:
                return _too_large(max_bytes)

        return self.get_response(request)


class UserLanguageMiddleware:
    """
    Activate the authenticated user's `language` preference for this request.

    Anonymous requests keep whatever `LocaleMiddleware` negotiated from
    `Accept-Language`. Unknown or blank preferences are ignored.

    NOTE:
        Must sit after `AuthenticationMiddleware`. Reading the preference loads
        the user's whole preference map once; later reads in the same request
        hit the per-instance cache.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            code = user.get_preference("language")
            supported = {lang for lang, _name in settings.LANGUAGES}
            if code and code in supported:
                translation.activate(code)
                request.LANGUAGE_CODE = translation.get_language()

        response = self.get_response(request)
        response.headers.setdefault("Content-Language", translation.get_language())
        return response


class RequestIDLogMiddleware:
    """
    - Reads `X-Request-ID` (if provided) or generates one.
    - Adds `request.request_id` and response header `X-Request-ID`.
    - Logs one structured line per request with latency (ms) and key attributes.
    - Stores request_id in a `contextvar` so other logs can include it.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        rid = _coerce_request_id(request.headers.get("X-Request-ID"))
        setattr(request, "request_id", rid)
        token = request_id_var.set(rid)

        start = time.perf_counter()
        try:
            response = self.get_response(request)
            duration_ms = int((time.perf_counter() - start) * 1000)

            response.headers["X-Request-ID"] = rid

            # Only report a user id when authentication already resolved one.
            user = getattr(request, "user", None)
            user_id = getattr(user, "id", None) if getattr(user, "is_authenticated", False) else None

            logger.info(
                "request",
                extra={
                    "request_id": rid,
                    "method": request.method,
                    "path": request.path,
                    "status": getattr(response, "status_code", 0),
                    "user_id": user_id,
                    "duration_ms": duration_ms,
                },
            )
            return response
        finally:
            request_id_var.reset(token)
