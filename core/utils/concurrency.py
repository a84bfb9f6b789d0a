from __future__ import annotations

"""
Concurrency helpers for optimistic locking via HTTP preconditions.

This module provides a small surface to:
- Compute a *weak* ETag from a stable fingerprint of a model row's persisted
  concrete fields (FKs via their `*_id` column).
- Enforce `If-Match` on modifying requests to prevent lost updates when two
  editors work on the same individual or family.

Design notes
-----------
- ETags are weak (W/"<sha256>") because they fingerprint stored values, not the
  serialized bytes. Any persisted change, however it happened (API, import,
  admin, raw `update()`), rotates the tag.
- `check_if_match()` enforces the header only when supplied, unless
  `settings.ENFORCE_IF_MATCH` is on, in which case a missing header is a 428.

Security
--------
- Clients must echo back the ETag from a fresh GET in `If-Match` to modify a
  record. A mismatch yields HTTP 412 Precondition Failed.
"""

import hashlib
from typing import Optional

from django.conf import settings
from rest_framework.exceptions import APIException
from rest_framework.request import Request


class PreconditionFailed(APIException):
    """HTTP 412 raised on stale `If-Match` values (RFC 9110 §13.1.1)."""
    status_code = 412
    default_detail = "Precondition failed (If-Match does not match current resource state)."
    default_code = "stale_resource"


class PreconditionRequired(APIException):
    """HTTP 428 raised when `ENFORCE_IF_MATCH` is on and `If-Match` is missing."""
    status_code = 428
    default_detail = "Precondition Required"
    default_code = "if_match_required"


def compute_etag(obj) -> str:
    """Return a weak ETag fingerprinting every concrete, non-m2m field of `obj`.

    Example:
        W/"5f0c...e1"

    NOTE:
        Using `attname` hashes FK ids without loading the relation; values are
        stringified so the digest is stable across Python types.
    """
    meta = obj._meta
    digest = hashlib.sha256()
    digest.update(f"{meta.app_label}.{meta.model_name}:{obj.pk}:".encode("utf-8"))
    fields = sorted(
        (f for f in meta.get_fields()
         if getattr(f, "concrete", False) and not f.many_to_many and not f.auto_created),
        key=lambda f: f.name,
    )
    for field in fields:
        name = getattr(field, "attname", field.name)
        value = getattr(obj, name, None)
        digest.update(name.encode("utf-8"))
        digest.update(b"=")
        digest.update(("" if value is None else str(value)).encode("utf-8"))
        digest.update(b";")
    return f'W/"{digest.hexdigest()}"'


def parse_if_match(header_val: Optional[str]) -> set[str]:
    """Split a (possibly comma-separated) `If-Match` header into tags."""
    if not header_val:
        return set()
    return {part.strip() for part in header_val.split(",") if part.strip()}


def check_if_match(request: Request, obj) -> None:
    """Validate the `If-Match` precondition for PUT/PATCH/DELETE on `obj`.

    Behavior:
        - Header absent: pass, or 428 when `ENFORCE_IF_MATCH` is on.
        - `If-Match: *`: always pass.
        - Tag differs from the current ETag: 412.

    Raises:
        PreconditionRequired, PreconditionFailed
    """
    client_tags = parse_if_match(request.headers.get("If-Match"))
    server_tag = compute_etag(obj)

    if not client_tags:
        if getattr(settings, "ENFORCE_IF_MATCH", False):
            raise PreconditionRequired({
                "detail": "Precondition Required",
                "code": "if_match_required",
                "hint": "Send If-Match header with the current ETag.",
                "expected_etag": server_tag,
            })
        return

    if "*" in client_tags:
        return

    if server_tag not in client_tags:
        raise PreconditionFailed({
            "detail": "Precondition Failed",
            "code": "stale_resource",
            "expected_etag": server_tag,
        })
