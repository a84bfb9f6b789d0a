"""
Genealogy domain models: trees, per-tree roles and settings, genealogical
records, pending changes, home-page blocks, messages and the site log.

Trees & roles
-------------
- `Tree` is identified by a unique slug `name`; its key/value settings live in
  `TreeSetting` rows and are read through `Tree.get_preference()`.
- A user's role on a tree is the `canedit` row of `UserTreeSetting`
  (`none < access < edit < accept < admin`). Site administrators are managers
  of every tree. Visitors may read trees whose `REQUIRE_AUTHENTICATION` is "0".

Records
-------
- `Individual`, `Family`, `Source` and `MediaObject` share `TreeRecord`: a tree
  FK plus a per-tree unique `xref` (`I1`, `F1`, `S1`, `M1`) assigned on first save
  when not supplied (GEDCOM imports keep the file's xrefs).
- `Individual.save()` derives `given_names`, `surname_prefix` and `surname`
  from the GEDCOM `name` (``John /van White/``).

Moderation
----------
- `PendingChange` stores a proposed create/update/delete with old/new data so a
  moderator can accept (apply) or reject it later. See `genealogy.changes`.

Audit
-----
- `SiteLog` rows record logins, configuration changes and applied edits. They
  survive user deletion (`user` is set to NULL).
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import IntegrityError, models, transaction

from .surname_traditions import get_tradition, split_name

logger = logging.getLogger(__name__)

# Automatic xref allocation retries this many times on a unique clash.
XREF_ATTEMPTS = 3


# ---------------------------------------------------------------------------
# Choices
# ---------------------------------------------------------------------------

class TreeRole(models.TextChoices):
    NONE = "none", "Visitor"
    ACCESS = "access", "Member"
    EDIT = "edit", "Editor"
    ACCEPT = "accept", "Moderator"
    ADMIN = "admin", "Manager"


_ROLE_RANK = {role: rank for rank, role in enumerate(TreeRole.values)}


def role_at_least(role: str, minimum: str) -> bool:
    """True when `role` ranks at or above `minimum` (unknown roles rank as `none`)."""
    return _ROLE_RANK.get(role, 0) >= _ROLE_RANK[minimum]


class Sex(models.TextChoices):
    MALE = "M", "Male"
    FEMALE = "F", "Female"
    UNKNOWN = "U", "Unknown"


class RecordType(models.TextChoices):
    INDIVIDUAL = "individual", "Individual"
    FAMILY = "family", "Family"
    SOURCE = "source", "Source"
    MEDIA = "media", "Media object"


class ChangeAction(models.TextChoices):
    CREATE = "create", "Create"
    UPDATE = "update", "Update"
    DELETE = "delete", "Delete"


class ChangeStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"


class BlockLocation(models.TextChoices):
    MAIN = "main", "Main"
    SIDE = "side", "Side"


class LogType(models.TextChoices):
    AUTH = "auth", "Authentication"
    CONFIG = "config", "Configuration"
    DEBUG = "debug", "Debug"
    EDIT = "edit", "Edit"
    ERROR = "error", "Error"
    MEDIA = "media", "Media"
    SEARCH = "search", "Search"


# ---------------------------------------------------------------------------
# Trees
# ---------------------------------------------------------------------------

class Tree(models.Model):
    """A family tree. Records, roles, settings and blocks hang off it."""

    # Values used when a tree has no row for the setting.
    DEFAULT_SETTINGS = {
        "SURNAME_TRADITION": "paternal",
        "REQUIRE_AUTHENTICATION": "0",
    }

    name = models.SlugField(max_length=64, unique=True)
    title = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("title", "name")

    def __str__(self) -> str:
        return self.title or self.name

    # ---- tree settings -------------------------------------------------------------

    def _load_preferences(self) -> dict[str, str]:
        cache = self.__dict__.get("_preferences")
        if cache is None:
            cache = dict(self.setting_rows.values_list("setting_name", "setting_value"))
            self.__dict__["_preferences"] = cache
        return cache

    def get_preference(self, name: str, default: str | None = None) -> str:
        """Tree setting value; falls back to `DEFAULT_SETTINGS`, then `default`, then ""."""
        if default is None:
            default = self.DEFAULT_SETTINGS.get(name, "")
        if self.pk is None:
            return default
        return self._load_preferences().get(name, default)

    def set_preference(self, name: str, value) -> "Tree":
        if self.pk is None:
            return self
        value = str(value)
        TreeSetting.objects.update_or_create(tree=self, setting_name=name, defaults={"setting_value": value})
        self._load_preferences()[name] = value
        return self

    def preferences(self) -> dict[str, str]:
        """All settings with defaults filled in (for the preferences endpoint)."""
        merged = dict(self.DEFAULT_SETTINGS)
        if self.pk is not None:
            merged.update(self._load_preferences())
        return merged

    @property
    def surname_tradition(self):
        return get_tradition(self.get_preference("SURNAME_TRADITION"))

    # ---- per-user settings -----------------------------------------------------------

    def user_preference(self, user, name: str, default: str = "") -> str:
        if user is None or not getattr(user, "is_authenticated", False):
            return default
        row = self.user_settings.filter(user=user, setting_name=name).first()
        return row.setting_value if row else default

    def set_user_preference(self, user, name: str, value) -> None:
        UserTreeSetting.objects.update_or_create(
            tree=self, user=user, setting_name=name, defaults={"setting_value": str(value)}
        )

    def role_for(self, user) -> str:
        """
        Resolve `user`'s role on this tree.

        Anonymous visitors: `none`. Site administrators: `admin`. Otherwise the
        user's `canedit` setting for this tree (unknown values count as `none`).
        """
        if user is None or not getattr(user, "is_authenticated", False):
            return TreeRole.NONE
        if user.is_administrator():
            return TreeRole.ADMIN
        role = self.user_preference(user, "canedit", TreeRole.NONE)
        return role if role in _ROLE_RANK else TreeRole.NONE

    def allows(self, user, minimum: str) -> bool:
        """
        True when `user` may act with at least `minimum` on this tree.

        NOTE:
            Read access (`access`) is open to everyone while the tree's
            `REQUIRE_AUTHENTICATION` setting is "0".
        """
        if minimum == TreeRole.NONE:
            return True
        if minimum == TreeRole.ACCESS and self.get_preference("REQUIRE_AUTHENTICATION") == "0":
            return True
        return role_at_least(self.role_for(user), minimum)


class TreeSetting(models.Model):
    """One key/value setting of a tree (SURNAME_TRADITION, CONTACT_USER_ID, ...)."""

    tree = models.ForeignKey(Tree, on_delete=models.CASCADE, related_name="setting_rows")
    setting_name = models.CharField(max_length=32)
    setting_value = models.TextField(blank=True, default="")

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=("tree", "setting_name"), name="unique_tree_setting"),
        ]

    def __str__(self) -> str:
        return f"{self.tree_id}:{self.setting_name}"


class UserTreeSetting(models.Model):
    """Per-user per-tree settings: `canedit` (role), `gedcomid`, `rootid`."""

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="tree_settings")
    tree = models.ForeignKey(Tree, on_delete=models.CASCADE, related_name="user_settings")
    setting_name = models.CharField(max_length=32)
    setting_value = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=("user", "tree", "setting_name"), name="unique_user_tree_setting"),
        ]
        indexes = [
            models.Index(fields=("tree", "setting_name", "setting_value"), name="genealogy_usertree_value_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.user_id}@{self.tree_id}:{self.setting_name}={self.setting_value}"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class TreeRecord(models.Model):
    """
    Abstract base for genealogical records.

    Fields:
        tree: owning tree (records never move between trees).
        xref: GEDCOM cross-reference id, unique per tree (e.g. "I12").
        gedcom: raw GEDCOM text of the record as last imported.

    Subclasses set `XREF_PREFIX`.
    """

    XREF_PREFIX = "X"

    tree = models.ForeignKey(Tree, on_delete=models.CASCADE, related_name="%(class)s_records")
    xref = models.CharField(max_length=20, blank=True)
    gedcom = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ("id",)
        constraints = [
            models.UniqueConstraint(fields=("tree", "xref"), name="%(app_label)s_%(class)s_unique_xref"),
        ]

    @classmethod
    def next_xref(cls, tree) -> str:
        """Next free `<prefix><n>` for `tree` (one past the highest numeric suffix)."""
        prefix = cls.XREF_PREFIX
        highest = 0
        for xref in cls.objects.filter(tree=tree, xref__startswith=prefix).values_list("xref", flat=True):
            suffix = xref[len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{prefix}{highest + 1}"

    def save(self, *args, **kwargs):
        if self.xref:
            super().save(*args, **kwargs)
            return
        for attempt in range(1, XREF_ATTEMPTS + 1):
            try:
                with transaction.atomic():
                    # Lock the tree row so concurrent creates allocate xrefs one at a time.
                    Tree.objects.select_for_update().get(pk=self.tree_id)
                    self.xref = self.next_xref(self.tree)
                    super().save(*args, **kwargs)
                return
            except IntegrityError:
                taken = type(self).objects.filter(tree_id=self.tree_id, xref=self.xref).exists()
                self.xref = ""
                if not taken or attempt == XREF_ATTEMPTS:
                    raise
                logger.warning("xref clash on %s in tree %s, retrying", type(self).__name__, self.tree_id)


class Individual(TreeRecord):
    """A person. `name` is the GEDCOM NAME value, e.g. ``John /White/``."""

    XREF_PREFIX = "I"

    name = models.CharField(max_length=255)
    sex = models.CharField(max_length=1, choices=Sex.choices, default=Sex.UNKNOWN)
    given_names = models.CharField(max_length=255, blank=True, default="")
    surname_prefix = models.CharField(max_length=64, blank=True, default="")
    surname = models.CharField(max_length=255, blank=True, default="", db_index=True)
    married_name = models.CharField(max_length=255, blank=True, default="")
    birth_date = models.CharField(max_length=64, blank=True, default="")
    birth_place = models.CharField(max_length=255, blank=True, default="")
    death_date = models.CharField(max_length=64, blank=True, default="")
    death_place = models.CharField(max_length=255, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    def __str__(self) -> str:
        return self.display_name

    @property
    def display_name(self) -> str:
        """The name without GEDCOM slashes: ``John /White/`` → ``John White``."""
        return " ".join(self.name.replace("/", " ").split())

    def save(self, *args, **kwargs):
        parts = split_name(self.name)
        self.given_names = parts["GIVN"]
        self.surname_prefix = parts["SPFX"]
        self.surname = parts["SURN"]
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "name" in update_fields:
            kwargs["update_fields"] = set(update_fields) | {"given_names", "surname_prefix", "surname"}
        super().save(*args, **kwargs)


class Family(TreeRecord):
    """A couple and their children."""

    XREF_PREFIX = "F"

    husband = models.ForeignKey(
        Individual, on_delete=models.SET_NULL, null=True, blank=True, related_name="husband_in_families"
    )
    wife = models.ForeignKey(
        Individual, on_delete=models.SET_NULL, null=True, blank=True, related_name="wife_in_families"
    )
    children = models.ManyToManyField(Individual, blank=True, related_name="child_in_families")
    marriage_date = models.CharField(max_length=64, blank=True, default="")
    marriage_place = models.CharField(max_length=255, blank=True, default="")

    class Meta(TreeRecord.Meta):
        verbose_name_plural = "families"

    def __str__(self) -> str:
        husband = self.husband.display_name if self.husband_id else "?"
        wife = self.wife.display_name if self.wife_id else "?"
        return f"{husband} + {wife}"


class Source(TreeRecord):
    XREF_PREFIX = "S"

    title = models.CharField(max_length=255)
    author = models.CharField(max_length=255, blank=True, default="")
    publication = models.CharField(max_length=255, blank=True, default="")
    text = models.TextField(blank=True, default="")

    def __str__(self) -> str:
        return self.title


class MediaObject(TreeRecord):
    """An uploaded file or an external file reference (GEDCOM OBJE/FILE)."""

    XREF_PREFIX = "M"

    file = models.FileField(upload_to="media/%Y/%m", blank=True)
    file_reference = models.CharField(max_length=255, blank=True, default="")
    title = models.CharField(max_length=255, blank=True, default="")
    mime_type = models.CharField(max_length=100, blank=True, default="")
    individuals = models.ManyToManyField(Individual, blank=True, related_name="media_objects")

    def __str__(self) -> str:
        return self.title or self.file_reference or self.xref


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------

class PendingChange(models.Model):
    """
    A proposed create/update/delete of one record.

    - `old_data` snapshots the record before the change (None for creates).
    - `new_data` is the submitted payload (None for deletes).
    - Changes applied immediately are stored with status `accepted` so the
      history of every edit stays in one place.
    """

    tree = models.ForeignKey(Tree, on_delete=models.CASCADE, related_name="pending_changes")
    record_type = models.CharField(max_length=16, choices=RecordType.choices)
    object_id = models.BigIntegerField(null=True, blank=True)
    xref = models.CharField(max_length=20, blank=True, default="")
    action = models.CharField(max_length=8, choices=ChangeAction.choices)
    old_data = models.JSONField(null=True, blank=True)
    new_data = models.JSONField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=ChangeStatus.choices, default=ChangeStatus.PENDING)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="pending_changes"
    )
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="reviewed_changes"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=("tree", "status"), name="genealogy_change_tree_idx"),
            models.Index(fields=("user", "status"), name="genealogy_change_user_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.action} {self.record_type} {self.xref or self.object_id} ({self.status})"


# ---------------------------------------------------------------------------
# Home-page blocks
# ---------------------------------------------------------------------------

class Block(models.Model):
    """
    A home-page block. Rows with neither user nor tree are the site defaults
    copied to every new user.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, null=True, blank=True, related_name="blocks"
    )
    tree = models.ForeignKey(Tree, on_delete=models.CASCADE, null=True, blank=True, related_name="blocks")
    location = models.CharField(max_length=4, choices=BlockLocation.choices, default=BlockLocation.MAIN)
    block_order = models.PositiveIntegerField(default=0)
    module_name = models.CharField(max_length=32)

    class Meta:
        ordering = ("location", "block_order", "id")

    def __str__(self) -> str:
        return f"{self.module_name}@{self.location}#{self.block_order}"


class BlockSetting(models.Model):
    block = models.ForeignKey(Block, on_delete=models.CASCADE, related_name="settings")
    setting_name = models.CharField(max_length=32)
    setting_value = models.TextField(blank=True, default="")

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=("block", "setting_name"), name="unique_block_setting"),
        ]


# ---------------------------------------------------------------------------
# Messages & site log
# ---------------------------------------------------------------------------

class Message(models.Model):
    """A message delivered to `user`. `sender` is the sender's username or email."""

    sender = models.CharField(max_length=254)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="received_messages")
    subject = models.CharField(max_length=255)
    body = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "-id")

    def __str__(self) -> str:
        return f"{self.sender} → {self.user_id}: {self.subject}"


class SiteLog(models.Model):
    """One site log entry (logins, configuration changes, applied edits, errors)."""

    log_type = models.CharField(max_length=8, choices=LogType.choices)
    message = models.TextField()
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    request_id = models.CharField(max_length=64, blank=True, default="")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="site_log"
    )
    tree = models.ForeignKey(Tree, on_delete=models.SET_NULL, null=True, blank=True, related_name="site_log")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [models.Index(fields=("log_type", "created_at"), name="genealogy_sitelog_type_idx")]

    def __str__(self) -> str:
        return f"[{self.log_type}] {self.message[:60]}"
