"""
Pending changes of a tree: `/api/trees/{tree}/changes/`.

- Editors list (and retrieve) their own changes.
- Moderators (`accept`+) list every change of the tree and `accept`/`reject`
  pending ones. Accepting re-validates the stored data and applies it.
- Filters: `status`, `record_type`, `action`.
"""

from __future__ import annotations

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.permissions import TreeRolePermission
from genealogy import changes
from genealogy.models import PendingChange, TreeRole, role_at_least
from genealogy.schema import ERROR_RESPONSE, VALIDATION_ERROR_RESPONSE
from genealogy.serializers import PendingChangeSerializer

from .mixins import TreeLookupMixin


@extend_schema_view(
    list=extend_schema(tags=["Changes"], description="List changes (editors see their own)."),
    retrieve=extend_schema(tags=["Changes"], description="Retrieve one change."),
)
class PendingChangeViewSet(TreeLookupMixin, viewsets.ReadOnlyModelViewSet):
    permission_classes = [TreeRolePermission]
    queryset = PendingChange.objects.select_related("tree", "user", "reviewed_by")
    serializer_class = PendingChangeSerializer
    lookup_value_regex = r"\d+"
    filterset_fields = ["status", "record_type", "action"]
    ordering_fields = ["created_at", "reviewed_at"]
    ordering = ["-created_at", "-id"]

    def required_role(self, request) -> str:
        if self.action in ("accept", "reject"):
            return TreeRole.ACCEPT
        return TreeRole.EDIT

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.is_schema_view():
            return queryset.none()
        tree = self.get_tree()
        queryset = queryset.filter(tree=tree)
        if not role_at_least(tree.role_for(self.request.user), TreeRole.ACCEPT):
            queryset = queryset.filter(user=self.request.user)
        return queryset

    @extend_schema(
        tags=["Changes"],
        request=None,
        responses={200: PendingChangeSerializer, 400: VALIDATION_ERROR_RESPONSE, 409: ERROR_RESPONSE},
        description="Apply a pending change.",
    )
    @action(detail=True, methods=["post"])
    def accept(self, request, *args, **kwargs):
        change = self.get_object()
        changes.accept(change, request.user, request=request)
        change.refresh_from_db()
        return Response(self.get_serializer(change).data)

    @extend_schema(
        tags=["Changes"],
        request=None,
        responses={200: PendingChangeSerializer, 409: ERROR_RESPONSE},
        description="Discard a pending change.",
    )
    @action(detail=True, methods=["post"])
    def reject(self, request, *args, **kwargs):
        change = changes.reject(self.get_object(), request.user)
        return Response(self.get_serializer(change).data)
