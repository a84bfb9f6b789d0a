from __future__ import annotations

"""
GEDCOM import and export endpoints for one tree.

Overview
--------
- `POST /api/trees/{tree}/import/` (tree managers)
    * Transport: `multipart/form-data` with a single `file` part.
    * Throttle: `imports` scope.
    * Idempotency: decorated with `@idempotent`; the first successful response
      for `(user, key, method, path, body-hash)` is replayed on retries.
    * `?dry_run=1` validates and counts without saving; `?replace=1` empties the
      tree first.
    * Size: files above `MAX_IMPORT_BYTES` give HTTP 413.
- `GET /api/trees/{tree}/export/` (tree readers)
    * GEDCOM 5.5.1 download (`text/x-gedcom`) by default, or `?format=json`
      for a count summary.
    * Throttle: `exports` scope.
    * `X-Export-Total`, `X-Export-Limit`, `X-Export-Truncated` headers.

Note:
    Parsing and record creation live in `genealogy.gedcom`.
"""

from typing import Any, Dict

from django.conf import settings
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.parsers import MultiPartParser
from rest_framework.renderers import JSONRenderer
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from core.permissions import TreeRolePermission
from core.utils.idempotency import idempotent
from genealogy.gedcom import GedcomError, count_records, export_gedcom, import_gedcom, read_upload
from genealogy.models import LogType, TreeRole
from genealogy.renderers import GedcomRenderer
from genealogy.schema import (
    DRY_RUN_PARAM,
    ERROR_RESPONSE,
    IDEMPOTENCY_EXAMPLE,
    IDEMPOTENCY_KEY_HEADER,
    IMPORT_RESULT_RESPONSE,
    VALIDATION_ERROR_RESPONSE,
)
from genealogy.sitelog import write_log

from .mixins import TreeLookupMixin

TRUTHY = ("1", "true", "yes", "on", "True")


def _summary_payload(result) -> Dict[str, Any]:
    return {
        "dry_run": result.dry_run,
        "replaced": result.replaced,
        "counts": result.counts,
        "errors": result.errors,
        "truncated": result.truncated,
    }


class GedcomImportView(TreeLookupMixin, APIView):
    permission_classes = [TreeRolePermission]
    throttle_scope = "imports"
    parser_classes = [MultiPartParser]

    def required_role(self, request) -> str:
        return TreeRole.ADMIN

    @extend_schema(
        tags=["GEDCOM"],
        request={
            "multipart/form-data": {
                "type": "object",
                "properties": {"file": {"type": "string", "format": "binary"}},
                "required": ["file"],
            }
        },
        parameters=[
            DRY_RUN_PARAM,
            OpenApiParameter(name="replace", type=OpenApiTypes.BOOL, location=OpenApiParameter.QUERY,
                             required=False, description="Delete the tree's records before importing."),
            IDEMPOTENCY_KEY_HEADER,
        ],
        responses={200: IMPORT_RESULT_RESPONSE, 400: VALIDATION_ERROR_RESPONSE, 413: ERROR_RESPONSE},
        examples=[IDEMPOTENCY_EXAMPLE],
        description="Import a GEDCOM file into the tree.",
    )
    @idempotent
    def post(self, request: Request, *args, **kwargs) -> Response:
        upload = request.FILES.get("file")
        if not upload:
            return Response({"file": ["This field is required."]}, status=status.HTTP_400_BAD_REQUEST)
        try:
            text = read_upload(upload)
        except ValueError as e:
            return Response({"file": [str(e)]}, status=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)

        tree = self.get_tree()
        dry_run = request.query_params.get("dry_run", "") in TRUTHY
        replace = request.query_params.get("replace", "") in TRUTHY
        try:
            result = import_gedcom(tree, text, dry_run=dry_run, replace=replace)
        except GedcomError as e:
            return Response({"file": [str(e)]}, status=status.HTTP_400_BAD_REQUEST)

        if not dry_run:
            write_log(
                LogType.EDIT,
                f"GEDCOM import ({upload.name}): {result.counts}, {len(result.errors)} errors",
                request=request,
                tree=tree,
            )
        return Response(_summary_payload(result))


class GedcomExportView(TreeLookupMixin, APIView):
    permission_classes = [TreeRolePermission]
    throttle_scope = "exports"
    renderer_classes = [GedcomRenderer, JSONRenderer]

    def required_role(self, request) -> str:
        return TreeRole.ACCESS

    @extend_schema(
        tags=["GEDCOM"],
        parameters=[
            OpenApiParameter(name="format", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY,
                             required=False, enum=["ged", "json"]),
        ],
        responses={
            (200, "text/x-gedcom"): OpenApiResponse(response=OpenApiTypes.STR, description="GEDCOM 5.5.1 file"),
            (200, "application/json"): OpenApiResponse(response=OpenApiTypes.OBJECT, description="Record counts"),
            403: ERROR_RESPONSE,
        },
        description="Download the tree as GEDCOM, or a JSON summary of it.",
    )
    def get(self, request: Request, *args, **kwargs) -> Response:
        tree = self.get_tree()
        limit = int(getattr(settings, "EXPORT_MAX_ROWS", 200_000))
        counts = count_records(tree)
        total = sum(counts.values())

        if request.accepted_renderer.format == "json":
            response = Response({"tree": tree.name, "title": tree.title, "counts": counts, "total": total})
        else:
            response = Response(export_gedcom(tree, limit=limit))
            response["Content-Disposition"] = f'attachment; filename="{tree.name}.ged"'

        response["X-Export-Total"] = str(total)
        response["X-Export-Limit"] = str(limit)
        response["X-Export-Truncated"] = "true" if total > limit else "false"
        return response
