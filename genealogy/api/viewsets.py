from __future__ import annotations

"""
Record viewsets nested under `/api/trees/{tree}/`.

Highlights
----------
- `TreeScopedViewSet`:
  * Resolves the tree from the URL and filters every queryset by it.
  * Guards access with `TreeRolePermission` (reads: `access`, writes: `edit`).
  * Applies edits immediately for users who may auto-accept (201/200/204),
    otherwise queues a `PendingChange` and answers 202 with it.
  * Optimistic concurrency (ETag/If-Match) via `ETagConcurrencyMixin`.
- Domain viewsets (`Individual`, `Family`, `Source`, `MediaObject`) expose
  filter/search/ordering for the usual lookups (surname, xref, title).

Security
--------
- A record id from another tree is a 404 here: lookups go through the
  tree-filtered queryset.
"""

from django.db import transaction
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from core.permissions import TreeRolePermission
from genealogy import changes
from genealogy.models import (
    ChangeAction,
    Family,
    Individual,
    MediaObject,
    RecordType,
    Sex,
    Source,
)
from genealogy.schema import IF_MATCH_HEADER
from genealogy.serializers import (
    FamilySerializer,
    IndividualSerializer,
    MediaObjectSerializer,
    PendingChangeSerializer,
    SourceSerializer,
)

from .mixins import ETagConcurrencyMixin, TreeLookupMixin


class TreeScopedViewSet(TreeLookupMixin, ETagConcurrencyMixin, viewsets.ModelViewSet):
    """
    Base viewset for genealogical records.

    Subclasses set `record_type` (a `RecordType` value) plus the usual
    queryset/serializer/filter attributes.
    """

    permission_classes = [TreeRolePermission]
    lookup_value_regex = r"\d+"
    record_type: str = ""
    # set per action (child-names/)
    throttle_scope = None

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.is_schema_view():
            return queryset.none()
        return queryset.filter(tree=self.get_tree())

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if not self.is_schema_view():
            context["tree"] = self.get_tree()
        return context

    def _pending_response(self, change) -> Response:
        return Response(PendingChangeSerializer(change).data, status=status.HTTP_202_ACCEPTED)

    def create(self, request, *args, **kwargs):
        tree = self.get_tree()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if not changes.can_auto_accept(tree, request.user):
            change = changes.propose(
                tree, request.user, self.record_type, ChangeAction.CREATE, data=changes.json_safe(request.data)
            )
            return self._pending_response(change)

        with transaction.atomic():
            instance = serializer.save(tree=tree)
            changes.record_applied(
                tree,
                request.user,
                self.record_type,
                ChangeAction.CREATE,
                instance=instance,
                new_data=changes.snapshot(self.record_type, instance, tree),
                request=request,
            )
        headers = self.get_success_headers(serializer.data)
        return self.set_etag(Response(serializer.data, status=status.HTTP_201_CREATED, headers=headers), instance)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        tree = self.get_tree()
        instance = self.get_object()
        self.check_preconditions(request, instance)
        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        if not changes.can_auto_accept(tree, request.user):
            change = changes.propose(
                tree,
                request.user,
                self.record_type,
                ChangeAction.UPDATE,
                instance=instance,
                data=changes.json_safe(request.data),
            )
            return self._pending_response(change)

        before = changes.snapshot(self.record_type, instance, tree)
        with transaction.atomic():
            instance = serializer.save()
            changes.record_applied(
                tree,
                request.user,
                self.record_type,
                ChangeAction.UPDATE,
                instance=instance,
                old_data=before,
                new_data=changes.snapshot(self.record_type, instance, tree),
                request=request,
            )
        instance.refresh_from_db()
        return self.set_etag(Response(serializer.data), instance)

    def destroy(self, request, *args, **kwargs):
        tree = self.get_tree()
        instance = self.get_object()
        self.check_preconditions(request, instance)

        if not changes.can_auto_accept(tree, request.user):
            change = changes.propose(tree, request.user, self.record_type, ChangeAction.DELETE, instance=instance)
            return self._pending_response(change)

        with transaction.atomic():
            changes.record_applied(
                tree,
                request.user,
                self.record_type,
                ChangeAction.DELETE,
                instance=instance,
                old_data=changes.snapshot(self.record_type, instance, tree),
                request=request,
            )
            self.perform_destroy(instance)
        return Response(status=status.HTTP_204_NO_CONTENT)


def _record_schema(tag: str, noun: str):
    """Shared `extend_schema_view` arguments for a record viewset."""
    return dict(
        list=extend_schema(tags=[tag], description=f"List {noun} records of the tree."),
        retrieve=extend_schema(tags=[tag], description=f"Retrieve one {noun} (sets ETag)."),
        create=extend_schema(
            tags=[tag], description=f"Create a {noun}. Answers 202 with a pending change when moderation applies."
        ),
        update=extend_schema(tags=[tag], parameters=[IF_MATCH_HEADER], description=f"Replace a {noun}."),
        partial_update=extend_schema(tags=[tag], parameters=[IF_MATCH_HEADER], description=f"Update a {noun}."),
        destroy=extend_schema(tags=[tag], parameters=[IF_MATCH_HEADER], description=f"Delete a {noun}."),
    )


@extend_schema_view(**_record_schema("Individuals", "individual"))
class IndividualViewSet(TreeScopedViewSet):
    """Individuals with surname/xref filters and name search."""

    record_type = RecordType.INDIVIDUAL
    queryset = Individual.objects.all()
    serializer_class = IndividualSerializer
    filterset_fields = ["xref", "sex", "surname"]
    search_fields = ["name", "married_name", "birth_place", "death_place"]
    ordering_fields = ["surname", "given_names", "xref", "created_at", "updated_at"]
    ordering = ["surname", "given_names", "id"]


@extend_schema_view(**_record_schema("Families", "family"))
class FamilyViewSet(TreeScopedViewSet):
    """
    Families plus `child-names/`, the surname tradition's suggestion for a new
    child of the couple.

    PERF:
        Spouses are joined and children prefetched for list rendering.
    """

    record_type = RecordType.FAMILY
    queryset = Family.objects.select_related("husband", "wife").prefetch_related("children")
    serializer_class = FamilySerializer
    filterset_fields = ["xref", "husband", "wife"]
    search_fields = ["husband__name", "wife__name", "marriage_place"]
    ordering_fields = ["xref", "created_at", "updated_at"]
    ordering = ["id"]

    @extend_schema(
        tags=["Families"],
        parameters=[OpenApiParameter("sex", str, description="Sex of the new child: M, F or U (default).")],
        description="Suggested name fields for a new child of this family.",
    )
    @action(detail=True, methods=["get"], url_path="child-names", throttle_scope="names")
    def child_names(self, request, *args, **kwargs):
        family = self.get_object()
        sex = (request.query_params.get("sex") or Sex.UNKNOWN).upper()
        if sex not in Sex.values:
            raise ValidationError({"sex": f"Expected one of {', '.join(Sex.values)}."})
        tree = self.get_tree()
        tradition = tree.surname_tradition
        father = family.husband.name if family.husband_id else ""
        mother = family.wife.name if family.wife_id else ""
        return Response({
            "tradition": tradition.name,
            "names": tradition.new_child_names(father, mother, sex),
        })


@extend_schema_view(**_record_schema("Sources", "source"))
class SourceViewSet(TreeScopedViewSet):
    record_type = RecordType.SOURCE
    queryset = Source.objects.all()
    serializer_class = SourceSerializer
    filterset_fields = ["xref"]
    search_fields = ["title", "author", "publication"]
    ordering_fields = ["title", "xref", "created_at"]
    ordering = ["title", "id"]


@extend_schema_view(**_record_schema("Media", "media object"))
class MediaObjectViewSet(TreeScopedViewSet):
    """Media objects; uploads use multipart requests with a `file` part."""

    record_type = RecordType.MEDIA
    queryset = MediaObject.objects.prefetch_related("individuals")
    serializer_class = MediaObjectSerializer
    filterset_fields = ["xref", "mime_type"]
    search_fields = ["title", "file_reference"]
    ordering_fields = ["title", "xref", "created_at"]
    ordering = ["id"]
