"""`GET /api/census/`: census dates and places for the census assistant."""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from genealogy.census import census_options


class CensusView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(
        tags=["Census"],
        parameters=[OpenApiParameter("place", OpenApiTypes.STR, description="Only this place, e.g. Wales.")],
        responses={200: OpenApiTypes.OBJECT},
        description="Census options grouped by place.",
    )
    def get(self, request, *args, **kwargs):
        return Response(census_options(request.query_params.get("place")))
