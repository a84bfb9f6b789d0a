"""
Site log writer.

`write_log()` records one `SiteLog` row and mirrors it to the `genealogy` logger
so console output and the database tell the same story. The current request id
(from `core.logging`) is stored with the row for correlation.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.logging import current_request_id

from .models import LogType, SiteLog

logger = logging.getLogger("genealogy.sitelog")


def client_ip(request) -> Optional[str]:
    """Best-effort client address (REMOTE_ADDR; proxies are trusted upstream)."""
    if request is None:
        return None
    return request.META.get("REMOTE_ADDR") or None


def write_log(log_type: str, message: str, *, request=None, user=None, tree=None) -> SiteLog:
    """
    Append a site log entry.

    Args:
        log_type: one of `LogType` (auth, config, edit, ...).
        message: human-readable text.
        request: optional HTTP request; supplies IP and, when `user` is not
            given, the acting user.
        user: the user the entry is about (defaults to the request's user).
        tree: optional tree the entry concerns.
    """
    if user is None and request is not None:
        candidate = getattr(request, "user", None)
        if candidate is not None and candidate.is_authenticated:
            user = candidate

    entry = SiteLog.objects.create(
        log_type=log_type,
        message=message,
        ip_address=client_ip(request),
        request_id=current_request_id() if current_request_id() != "-" else "",
        user=user,
        tree=tree,
    )
    level = logging.WARNING if log_type == LogType.ERROR else logging.INFO
    logger.log(level, "%s: %s", log_type, message)
    return entry
