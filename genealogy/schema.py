"""
drf-spectacular helpers for OpenAPI schema generation.

Purpose
-------
Centralize small, reusable OpenAPI components used across the API:
- Common headers (optimistic concurrency `If-Match`, idempotency key).
- Reusable error response shapes (generic error, validation error, pending change).

Notes
-----
- This module is **imported at startup** by `genealogy.apps.GenealogyConfig.ready()`.
  It must stay side-effect free beyond constant definitions so schema
  generation is deterministic.
- The `If-Match` header is documented as required for update/delete; views
  only enforce it when `settings.ENFORCE_IF_MATCH` is on.
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiExample,
    OpenApiParameter,
    OpenApiResponse,
    inline_serializer,
)
from rest_framework import serializers


# ------------------------------------------------------------------------------
# Shared components (headers, common error shapes) for reuse across endpoints
# ------------------------------------------------------------------------------

# SECURITY: Clients should echo the server-provided ETag via `If-Match` on
# PUT/PATCH/DELETE so two editors of the same record do not overwrite each other.
IF_MATCH_EXAMPLE = OpenApiExample(
    name="If-Match",
    description="Use the ETag from the prior GET when updating/deleting.",
    value='W/"3c1f0a9e..."',
)

IF_MATCH_HEADER = OpenApiParameter(
    name="If-Match",
    type=OpenApiTypes.STR,
    location=OpenApiParameter.HEADER,
    required=True,
    description=(
        "ETag of the record obtained from the last GET. "
        "Required for PUT/PATCH/DELETE when concurrency enforcement is enabled."
    ),
    examples=[IF_MATCH_EXAMPLE],
)

# NOTE: The server keys replays by (user, method, path, body-hash).
IDEMPOTENCY_KEY_HEADER = OpenApiParameter(
    name="Idempotency-Key",
    type=OpenApiTypes.STR,
    location=OpenApiParameter.HEADER,
    required=False,
    description=(
        "Client-provided key used to safely retry a POST. The first successful "
        "response for (user, method, path, body-hash) is replayed on duplicates."
    ),
)

DRY_RUN_PARAM = OpenApiParameter(
    name="dry_run",
    type=OpenApiTypes.BOOL,
    location=OpenApiParameter.QUERY,
    required=False,
    description="Validate and count without saving anything.",
)

ERROR_RESPONSE = OpenApiResponse(
    response=inline_serializer(
        name="Error",
        fields={
            "detail": serializers.CharField(),
            "code": serializers.CharField(required=False),
        },
    ),
    description="Error response",
)

VALIDATION_ERROR_RESPONSE = OpenApiResponse(
    response=inline_serializer(
        name="ValidationError",
        fields={
            "detail": serializers.CharField(required=False),
            "errors": serializers.DictField(
                child=serializers.ListField(child=serializers.CharField()),
                required=False,
            ),
        },
    ),
    description="Validation error",
)

IMPORT_RESULT_RESPONSE = OpenApiResponse(
    response=inline_serializer(
        name="GedcomImportResult",
        fields={
            "dry_run": serializers.BooleanField(),
            "replaced": serializers.BooleanField(),
            "counts": serializers.DictField(child=serializers.IntegerField()),
            "errors": serializers.ListField(child=serializers.DictField()),
            "truncated": serializers.BooleanField(),
        },
    ),
    description="Import summary",
)

IDEMPOTENCY_EXAMPLE = OpenApiExample(
    name="Idempotency Key",
    description="Send a unique key to make POST safe to retry.",
    value={"headers": {"Idempotency-Key": "c1e1c8bc-5cfe-4a76-9b6f-7a0b3e2d6b84"}},
)
