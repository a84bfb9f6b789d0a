"""
User administration: `/api/users/` (site administrators only).

- list with `?group=administrators|managers|moderators|unapproved|unverified|logged_in`
  and `?search=` over username, real name and email
- retrieve / create / update (administrator-only preferences included)
- destroy: see `accounts.services.delete_account`; an administrator cannot
  delete their own account here
- `POST {id}/approve/`: set `verified_by_admin = "1"` and email the user
- `GET latest/`: the most recently registered user
"""

from __future__ import annotations

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.response import Response

from core.permissions import IsSiteAdministrator
from genealogy.models import LogType
from genealogy.sitelog import write_log

from .serializers import UserAdminSerializer
from .services import delete_account

User = get_user_model()

USER_GROUPS = {
    "administrators": lambda qs: qs.administrators(),
    "managers": lambda qs: qs.managers(),
    "moderators": lambda qs: qs.moderators(),
    "unapproved": lambda qs: qs.unapproved(),
    "unverified": lambda qs: qs.unverified(),
    "logged_in": lambda qs: qs.logged_in(),
}


@extend_schema_view(
    list=extend_schema(
        tags=["Users"],
        parameters=[OpenApiParameter("group", OpenApiTypes.STR, enum=sorted(USER_GROUPS))],
        description="All users ordered by real name, optionally one group only.",
    ),
    retrieve=extend_schema(tags=["Users"]),
    create=extend_schema(tags=["Users"]),
    update=extend_schema(tags=["Users"]),
    partial_update=extend_schema(tags=["Users"]),
    destroy=extend_schema(tags=["Users"], description="Delete a user; you inherit their pending changes."),
)
class UserViewSet(viewsets.ModelViewSet):
    permission_classes = [IsSiteAdministrator]
    serializer_class = UserAdminSerializer
    queryset = User.objects.all()
    lookup_value_regex = r"\d+"
    search_fields = ["username", "real_name", "email"]
    ordering_fields = ["username", "real_name", "date_joined", "last_login"]

    def get_queryset(self):
        queryset = User.objects.ordered()
        if self.action != "list":
            return queryset
        group = self.request.query_params.get("group")
        if group:
            if group not in USER_GROUPS:
                raise ValidationError({"group": f"Expected one of {', '.join(sorted(USER_GROUPS))}."})
            queryset = USER_GROUPS[group](queryset)
        return queryset

    def perform_create(self, serializer):
        user = serializer.save()
        write_log(LogType.AUTH, f"User created by administrator: {user.username}", request=self.request)

    def perform_update(self, serializer):
        user = serializer.save()
        write_log(LogType.AUTH, f"User updated by administrator: {user.username}", request=self.request)

    def destroy(self, request, *args, **kwargs):
        user = self.get_object()
        if user.pk == request.user.pk:
            return Response(
                {"detail": "You cannot delete your own account.", "code": "cannot_delete_self"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        delete_account(user, actor=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Users"], request=None, responses={200: UserAdminSerializer})
    @action(detail=True, methods=["post"])
    def approve(self, request, *args, **kwargs):
        user = self.get_object()
        if user.get_preference("verified_by_admin") != "1":
            user.set_preference("verified_by_admin", "1")
            write_log(LogType.AUTH, f"User approved: {user.username}", request=request)
            if user.email:
                send_mail(
                    "Your account has been approved",
                    f"Hello {user},\n\nAn administrator approved your account. You can now log in.\n",
                    settings.DEFAULT_FROM_EMAIL,
                    [user.email],
                )
        return Response(self.get_serializer(user).data)

    @extend_schema(tags=["Users"], responses={200: UserAdminSerializer})
    @action(detail=False, methods=["get"])
    def latest(self, request, *args, **kwargs):
        user = User.objects.find_latest_to_register()
        if user is None:
            raise NotFound("No users.")
        return Response(self.get_serializer(user).data)
