"""
Logging helpers for request-scoped correlation.

Overview
--------
- Exposes a `contextvars.ContextVar` (`request_id_var`) holding the id of the
  request currently being served (set by middleware, read by any logger).
- Provides `RequestIDFilter`, a `logging.Filter` that stamps `request_id` and the
  request-line fields used by the structured formatter onto every `LogRecord`, so
  `%(request_id)s` or `%(status)s` never raise for records emitted by management
  commands, signals or third-party loggers.

Usage
-----
- `core.middleware.RequestIDLogMiddleware` sets the value per request and echoes
  it in the `X-Request-ID` response header.
- `genealogy.sitelog.write_log()` copies the id into `SiteLog.request_id` so site
  log rows and console lines can be joined.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar

# Public contextvar so middleware & arbitrary modules can read/write the current id.
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

# Fields the structured request formatter expects; blank outside the request logger.
_REQUEST_FIELDS = ("method", "path", "status", "user_id", "duration_ms")


def current_request_id() -> str:
    """Return the id bound to the running request, or "-" outside HTTP handling."""
    return request_id_var.get()


class RequestIDFilter(logging.Filter):
    """
    Ensures `%(request_id)s` (and the request-line fields) are present on every
    record, even when a logger emits outside of an HTTP request context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        for name in _REQUEST_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, "-")
        return True
