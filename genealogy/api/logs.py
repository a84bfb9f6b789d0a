from __future__ import annotations

from datetime import datetime

from django.utils.dateparse import parse_date, parse_datetime
from django.utils.timezone import is_naive, make_aware
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import viewsets
from rest_framework.request import Request

from core.permissions import IsSiteAdministrator
from genealogy.models import LogType, SiteLog
from genealogy.schema import ERROR_RESPONSE
from genealogy.serializers import SiteLogSerializer


@extend_schema(
    tags=["Site log"],
    parameters=[
        OpenApiParameter(name="type", type=OpenApiTypes.STR, required=False,
                         description="auth|config|debug|edit|error|media|search"),
        OpenApiParameter(name="user_id", type=OpenApiTypes.INT, required=False),
        OpenApiParameter(name="tree", type=OpenApiTypes.STR, required=False, description="Tree name"),
        OpenApiParameter(name="date_from", type=OpenApiTypes.DATETIME, required=False),
        OpenApiParameter(name="date_to", type=OpenApiTypes.DATETIME, required=False),
    ],
    responses={200: OpenApiResponse(description="Paginated site log"), 403: ERROR_RESPONSE},
    description="Read-only site log for site administrators.",
)
class SiteLogViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only site log, newest first.

    Filters (query params):
      - type: a log type (unknown values give an empty page)
      - user_id: integer
      - tree: tree name
      - date_from, date_to: ISO8601 dates or datetimes (inclusive)
    """

    queryset = SiteLog.objects.none()
    serializer_class = SiteLogSerializer
    permission_classes = [IsSiteAdministrator]
    throttle_scope = "logs-read"
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return SiteLog.objects.none()
        return SiteLog.objects.select_related("user", "tree").all()

    # ---- helpers for filtering ------------------------------------------------

    def _parse_dt(self, s: str | None, *, end: bool = False) -> datetime | None:
        if not s:
            return None
        # A bare date covers the whole day; parse_datetime would read it as midnight.
        try:
            day = parse_date(s)
        except ValueError:
            day = None
        if day is not None:
            dt = datetime.combine(day, datetime.max.time() if end else datetime.min.time())
        else:
            try:
                dt = parse_datetime(s)
            except ValueError:
                dt = None
            if dt is None:
                return None
        if is_naive(dt):
            dt = make_aware(dt)
        return dt

    def filter_queryset(self, queryset):
        request: Request = self.request
        params = request.query_params

        log_type = (params.get("type") or "").strip().lower()
        if log_type:
            if log_type not in LogType.values:
                return queryset.none()
            queryset = queryset.filter(log_type=log_type)

        uid = params.get("user_id")
        if uid:
            try:
                queryset = queryset.filter(user_id=int(uid))
            except ValueError:
                return queryset.none()

        tree = (params.get("tree") or "").strip()
        if tree:
            queryset = queryset.filter(tree__name=tree)

        df = self._parse_dt(params.get("date_from"))
        dt = self._parse_dt(params.get("date_to"), end=True)
        if df:
            queryset = queryset.filter(created_at__gte=df)
        if dt:
            queryset = queryset.filter(created_at__lte=dt)

        return queryset
