"""
Tree endpoints: `/api/trees/` and the tree-level actions.

Access
------
- list / retrieve: anyone who may read the tree (public trees are readable
  by visitors; the list only shows readable trees).
- create / destroy: site administrators.
- update, `access/`, `PATCH preferences/`: tree managers (`admin` role).
- `GET preferences/`, `names/`: readers of the tree.

Every configuration change writes a `config` site-log row.
"""

from __future__ import annotations

from django.db.models import Q
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import extend_schema, extend_schema_view, inline_serializer
from rest_framework import serializers, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.permissions import IsSiteAdministrator, TreeRolePermission
from genealogy.models import LogType, Tree, TreeRole, TreeSetting, UserTreeSetting
from genealogy.schema import ERROR_RESPONSE, IF_MATCH_HEADER, VALIDATION_ERROR_RESPONSE
from genealogy.serializers import (
    NameSuggestionSerializer,
    TreeAccessSerializer,
    TreePreferencesSerializer,
    TreeSerializer,
)
from genealogy.sitelog import write_log

from .mixins import ETagConcurrencyMixin

NAMES_RESPONSE = inline_serializer(
    name="NameSuggestion",
    fields={
        "tradition": serializers.CharField(),
        "has_surnames": serializers.BooleanField(),
        "has_married_names": serializers.BooleanField(),
        "names": serializers.DictField(child=serializers.CharField()),
    },
)


def readable_trees(user):
    """Trees `user` may read: public ones plus those with a member role."""
    queryset = Tree.objects.all()
    if user is not None and user.is_authenticated and user.is_administrator():
        return queryset
    protected = TreeSetting.objects.filter(
        setting_name="REQUIRE_AUTHENTICATION", setting_value="1"
    ).values("tree_id")
    visible = ~Q(pk__in=protected)
    if user is not None and user.is_authenticated:
        member_of = UserTreeSetting.objects.filter(
            user=user,
            setting_name="canedit",
            setting_value__in=[TreeRole.ACCESS, TreeRole.EDIT, TreeRole.ACCEPT, TreeRole.ADMIN],
        ).values("tree_id")
        visible |= Q(pk__in=member_of)
    return queryset.filter(visible)


@extend_schema_view(
    list=extend_schema(tags=["Trees"], description="List the trees you may read."),
    retrieve=extend_schema(tags=["Trees"], description="Retrieve a tree (sets ETag)."),
    create=extend_schema(tags=["Trees"], description="Create a tree (site administrators)."),
    update=extend_schema(tags=["Trees"], parameters=[IF_MATCH_HEADER], description="Rename a tree (managers)."),
    partial_update=extend_schema(tags=["Trees"], parameters=[IF_MATCH_HEADER], description="Rename a tree."),
    destroy=extend_schema(
        tags=["Trees"], parameters=[IF_MATCH_HEADER], description="Delete a tree and all its records."
    ),
)
class TreeViewSet(ETagConcurrencyMixin, viewsets.ModelViewSet):
    queryset = Tree.objects.all()
    serializer_class = TreeSerializer
    lookup_field = "name"
    lookup_value_regex = r"[-\w]+"
    search_fields = ["name", "title"]
    ordering_fields = ["name", "title", "created_at"]
    ordering = ["title", "name"]
    # set per action (names/)
    throttle_scope = None

    # role needed per action on an existing tree
    ROLE_BY_ACTION = {
        "retrieve": TreeRole.ACCESS,
        "names": TreeRole.ACCESS,
        "update": TreeRole.ADMIN,
        "partial_update": TreeRole.ADMIN,
        "access": TreeRole.ADMIN,
    }

    def get_permissions(self):
        if self.action in ("create", "destroy"):
            return [IsSiteAdministrator()]
        if self.action == "list":
            return [AllowAny()]
        return [TreeRolePermission()]

    def get_tree(self) -> Tree:
        tree = getattr(self, "_tree", None)
        if tree is None:
            tree = get_object_or_404(Tree, name=self.kwargs[self.lookup_field])
            self._tree = tree
        return tree

    def required_role(self, request) -> str:
        if self.action == "preferences":
            return TreeRole.ACCESS if request.method == "GET" else TreeRole.ADMIN
        return self.ROLE_BY_ACTION.get(self.action, TreeRole.ADMIN)

    def get_queryset(self):
        if self.action == "list":
            return readable_trees(self.request.user)
        return super().get_queryset()

    def perform_create(self, serializer):
        tree = serializer.save()
        write_log(LogType.CONFIG, f"Tree created: {tree.name}", request=self.request, tree=tree)

    def perform_update(self, serializer):
        tree = serializer.save()
        write_log(LogType.CONFIG, f"Tree updated: {tree.name}", request=self.request, tree=tree)

    def perform_destroy(self, instance):
        name = instance.name
        instance.delete()
        write_log(LogType.CONFIG, f"Tree deleted: {name}", request=self.request)

    @extend_schema(
        tags=["Trees"],
        request=TreePreferencesSerializer,
        responses={200: dict, 400: VALIDATION_ERROR_RESPONSE, 403: ERROR_RESPONSE},
        description="Read (members) or update (managers) the tree settings.",
    )
    @action(detail=True, methods=["get", "patch"])
    def preferences(self, request, *args, **kwargs):
        tree = self.get_tree()
        if request.method == "PATCH":
            serializer = TreePreferencesSerializer(data=request.data, partial=True)
            serializer.is_valid(raise_exception=True)
            for name, value in serializer.validated_data.items():
                tree.set_preference(name, value)
            if serializer.validated_data:
                changed = ", ".join(f"{k}={v}" for k, v in sorted(serializer.validated_data.items()))
                write_log(LogType.CONFIG, f"Tree preferences changed: {changed}", request=request, tree=tree)
        return Response(tree.preferences())

    @extend_schema(
        tags=["Trees"],
        request=TreeAccessSerializer,
        responses={200: TreeAccessSerializer, 400: VALIDATION_ERROR_RESPONSE, 403: ERROR_RESPONSE},
        description="Set a user's role on the tree and the individual they are linked to.",
    )
    @action(detail=True, methods=["post"])
    def access(self, request, *args, **kwargs):
        tree = self.get_tree()
        serializer = TreeAccessSerializer(data=request.data, context={"tree": tree})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        user = data["user"]

        tree.set_user_preference(user, "canedit", data["role"])
        for name in ("gedcomid", "rootid"):
            if name in data:
                tree.set_user_preference(user, name, data[name])
        write_log(
            LogType.CONFIG,
            f"Role on {tree.name} for {user.username} set to {data['role']}",
            request=request,
            tree=tree,
        )
        return Response({
            "user": user.username,
            "role": data["role"],
            "gedcomid": tree.user_preference(user, "gedcomid"),
            "rootid": tree.user_preference(user, "rootid"),
        })

    @extend_schema(
        tags=["Names"],
        request=NameSuggestionSerializer,
        responses={200: NAMES_RESPONSE, 400: VALIDATION_ERROR_RESPONSE},
        description="Name fields the tree's surname tradition suggests for a new relative.",
    )
    @action(detail=True, methods=["post"], throttle_scope="names")
    def names(self, request, *args, **kwargs):
        tree = self.get_tree()
        serializer = NameSuggestionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        tradition = tree.surname_tradition

        if data["relation"] == "child":
            names = tradition.new_child_names(data["father_name"], data["mother_name"], data["sex"])
        elif data["relation"] == "parent":
            names = tradition.new_parent_names(data["child_name"], data["sex"])
        else:
            names = tradition.new_spouse_names(data["spouse_name"], data["sex"])

        return Response({
            "tradition": tradition.name,
            "has_surnames": tradition.has_surnames(),
            "has_married_names": tradition.has_married_names(),
            "names": names,
        })
