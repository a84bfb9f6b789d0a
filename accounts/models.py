"""Custom user model for Family Tree.

Why a custom user?
------------------
- Adds `real_name` (the display name shown on trees and in messages) next to
  Django's `username` login name.
- Carries a per-user key/value preference map (`UserSetting` rows) that drives
  language, contact method, approval state and site administration rights.

Preferences
-----------
- `get_preference()` loads *all* of a user's settings with one query the first
  time any preference is read, then serves later reads from an instance cache.
  A request typically reads several preferences (language middleware, role
  checks, serializers), so this keeps it to a single query per request.
- `set_preference()` upserts one row and keeps the cache in step.
- Unsaved users never touch the database.

Lookups
-------
`User.objects` exposes the finder and role-list helpers used by the user
administration API (`administrators()`, `managers()`, `unapproved()`, ...).
"""

from __future__ import annotations

from typing import Optional

from django.conf import settings
from django.contrib.auth import SESSION_KEY
from django.contrib.auth.models import AbstractUser
from django.contrib.auth.models import UserManager as DjangoUserManager
from django.contrib.sessions.models import Session
from django.db import models
from django.db.models import Q
from django.utils import timezone

# Preference values are stored in a 255 character column.
PREFERENCE_MAX_LENGTH = 255


class UserQuerySet(models.QuerySet):
    """Finders and role lists over users."""

    def ordered(self):
        """All users, ordered by real name (username breaks ties)."""
        return self.order_by("real_name", "username")

    # ---- single-user finders -------------------------------------------------

    def find(self, user_id) -> Optional["User"]:
        return self.filter(pk=user_id).first()

    def find_by_email(self, email: str) -> Optional["User"]:
        return self.filter(email=email).first()

    def find_by_user_name(self, username: str) -> Optional["User"]:
        return self.filter(username=username).first()

    def find_by_identifier(self, identifier: str) -> Optional["User"]:
        """Match the login name first, then the email address (any case)."""
        return self.filter(username=identifier).first() or self.filter(email__iexact=identifier).first()

    def find_by_individual(self, individual) -> Optional["User"]:
        """The user whose `gedcomid` on the individual's tree is the individual's xref."""
        return self.filter(
            tree_settings__tree_id=individual.tree_id,
            tree_settings__setting_name="gedcomid",
            tree_settings__setting_value=individual.xref,
        ).first()

    def find_latest_to_register(self) -> Optional["User"]:
        return self.order_by("-date_joined", "-pk").first()

    # ---- role lists --------------------------------------------------------------

    def with_preference(self, name: str, value: str):
        return self.filter(setting_rows__setting_name=name, setting_rows__setting_value=value)

    def administrators(self):
        """Superusers plus users with `canadmin = "1"`."""
        return (
            self.filter(
                Q(is_superuser=True)
                | Q(setting_rows__setting_name="canadmin", setting_rows__setting_value="1")
            )
            .distinct()
            .ordered()
        )

    def _with_tree_role(self, role: str):
        return (
            self.filter(tree_settings__setting_name="canedit", tree_settings__setting_value=role)
            .distinct()
            .ordered()
        )

    def managers(self):
        """Users holding the `admin` role on at least one tree."""
        return self._with_tree_role("admin")

    def moderators(self):
        """Users holding the `accept` role on at least one tree."""
        return self._with_tree_role("accept")

    def unapproved(self):
        return self.with_preference("verified_by_admin", "0").ordered()

    def unverified(self):
        return self.with_preference("verified", "0").ordered()

    def logged_in(self):
        """
        Users owning at least one unexpired session.

        PERF:
            Session payloads are encoded, so each live session is decoded in
            Python. Acceptable for the admin listing this serves.
        """
        user_ids = set()
        for session in Session.objects.filter(expire_date__gt=timezone.now()):
            uid = session.get_decoded().get(SESSION_KEY)
            if uid is not None:
                user_ids.add(uid)
        return self.filter(pk__in=user_ids).ordered()


class UserManager(DjangoUserManager.from_queryset(UserQuerySet)):
    """Django's user manager (create_user/create_superuser) plus the finders above."""


class User(AbstractUser):
    """
    Project's custom user model.

    Fields beyond `AbstractUser`:
        real_name: display name (up to 64 chars).

    NOTE:
        `check_password()` (inherited) upgrades the stored hash transparently
        when `PASSWORD_HASHERS` changed since the password was set.
    """

    real_name = models.CharField(max_length=64, blank=True, default="")

    objects = UserManager()

    class Meta:
        ordering = ("real_name", "username")

    def __str__(self) -> str:
        return self.real_name or self.username

    # ---- plain field setters -------------------------------------------------------

    def _set_field(self, field: str, value: str) -> "User":
        if getattr(self, field) != value:
            setattr(self, field, value)
            if self.pk is not None:
                self.save(update_fields=[field])
        return self

    def set_user_name(self, username: str) -> "User":
        return self._set_field("username", username)

    def set_real_name(self, real_name: str) -> "User":
        return self._set_field("real_name", real_name[:64])

    def set_email(self, email: str) -> "User":
        return self._set_field("email", email)

    def change_password(self, raw_password: str) -> "User":
        """Hash and store a new password."""
        self.set_password(raw_password)
        if self.pk is not None:
            self.save(update_fields=["password"])
        return self

    # ---- preferences ---------------------------------------------------------------

    def _load_preferences(self) -> dict[str, str]:
        cache = self.__dict__.get("_preferences")
        if cache is None:
            cache = dict(self.setting_rows.values_list("setting_name", "setting_value"))
            self.__dict__["_preferences"] = cache
        return cache

    def get_preference(self, name: str, default: str = "") -> str:
        """
        Return one preference value.

        The first call loads every preference of this user in one query. A
        missing name caches `default`, so later reads of the same name return
        that first default until the preference is set.
        """
        if self.pk is None:
            return default
        return self._load_preferences().setdefault(name, default)

    def set_preference(self, name: str, value) -> "User":
        """Upsert one preference (value truncated to 255 chars); returns self."""
        if self.pk is None:
            return self
        value = str(value)[:PREFERENCE_MAX_LENGTH]
        if self.get_preference(name) == value:
            return self
        UserSetting.objects.update_or_create(
            user=self, setting_name=name, defaults={"setting_value": value}
        )
        self._load_preferences()[name] = value
        return self

    def delete_preference(self, name: str) -> None:
        if self.pk is None:
            return
        self.setting_rows.filter(setting_name=name).delete()
        self._load_preferences().pop(name, None)

    def refresh_from_db(self, *args, **kwargs):
        self.__dict__.pop("_preferences", None)
        super().refresh_from_db(*args, **kwargs)

    def is_administrator(self) -> bool:
        """Superusers and users with `canadmin = "1"` administer the whole site."""
        if self.is_superuser:
            return True
        return self.get_preference("canadmin") == "1"


class UserSetting(models.Model):
    """One preference (`setting_name` → `setting_value`) of one user."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="setting_rows",
    )
    setting_name = models.CharField(max_length=32)
    setting_value = models.CharField(max_length=PREFERENCE_MAX_LENGTH, blank=True, default="")

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=("user", "setting_name"), name="unique_user_setting"),
        ]

    def __str__(self) -> str:
        return f"{self.user_id}:{self.setting_name}={self.setting_value}"
