"""
Core data models shared across the project.

This module provides:
- `IdempotencyKey`: persistence for first responses keyed by
  (user, key, method, path, body_hash) to enable request replay semantics.

Concurrency & idempotency
-------------------------
- `IdempotencyKey` stores metadata required to reconstruct a DRF `Response` for
  repeated identical requests bearing the same `Idempotency-Key` header. GEDCOM
  imports are the main client: a retried upload must not create a second copy
  of every individual in the tree.
"""

from django.conf import settings
from django.db import models


class IdempotencyKey(models.Model):
    """
    Stores the first response for a given (user, key, method, path, body_hash) tuple.

    Purpose:
        Subsequent identical requests can be safely replayed without re-executing
        the underlying action (e.g., a POST that imported a GEDCOM file).

    Captured fields:
        - status_code and content_type
        - JSON-serializable body (prefer `Response.data` from DRF)

    Uniqueness:
        The `(user, key, method, path, body_hash)` constraint ensures that replays
        only occur for an exact match of identity and payload.

    Security:
        # SECURITY: Scoping by `user` prevents one account from replaying another
        # account's response even when clients reuse idempotency keys.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="core_idempotency_keys",
    )
    # Client-provided key from 'Idempotency-Key' header.
    key = models.CharField(max_length=200)
    method = models.CharField(max_length=10)
    # Use TextField in case of long paths; normalize to `request.path`.
    path = models.TextField()
    # SHA-256 hex of the raw request body (or parsed data fallback).
    body_hash = models.CharField(max_length=64)

    status_code = models.PositiveSmallIntegerField()
    content_type = models.CharField(max_length=100, default="application/json")
    # Store DRF Response.data where possible; must be JSON-serializable.
    response_json = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=("user", "key", "method", "path", "body_hash"),
                name="unique_idempotency_request_tuple",
            ),
        ]
        indexes = [
            models.Index(fields=("user", "created_at"), name="core_idem_user_created_idx"),
            models.Index(fields=("created_at",), name="core_idem_created_idx"),
        ]
        ordering = ("-created_at",)

    def __str__(self) -> str:
        return f"Idem(user={self.user_id}, key={self.key}, {self.method} {self.path})"
