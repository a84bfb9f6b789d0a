"""
Django admin registrations for the genealogy models.

Scope & intent
--------------
- Back-office only: meant for site operators browsing and troubleshooting.
  Day-to-day editing goes through the API so pending changes and the site
  log stay complete; admin edits bypass both.
- Settings rows are shown inline on their tree so one page holds a tree's
  configuration.

Security
--------
- Treat admin as an internal tool. Do not grant access to non-staff users.
"""

from __future__ import annotations

from django.contrib import admin

from .models import (
    Block,
    BlockSetting,
    Family,
    Individual,
    MediaObject,
    Message,
    PendingChange,
    SiteLog,
    Source,
    Tree,
    TreeSetting,
    UserTreeSetting,
)


class TreeSettingInline(admin.TabularInline):
    model = TreeSetting
    extra = 0


class UserTreeSettingInline(admin.TabularInline):
    model = UserTreeSetting
    extra = 0
    autocomplete_fields = ("user",)


@admin.register(Tree)
class TreeAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "title", "created_at")
    search_fields = ("name", "title")
    inlines = (TreeSettingInline, UserTreeSettingInline)


@admin.register(Individual)
class IndividualAdmin(admin.ModelAdmin):
    """Individuals with derived surname columns for quick lookup."""
    list_display = ("id", "tree", "xref", "name", "sex", "birth_date", "death_date")
    list_filter = ("tree", "sex")
    search_fields = ("xref", "name", "surname", "married_name")
    readonly_fields = ("given_names", "surname_prefix", "surname")


@admin.register(Family)
class FamilyAdmin(admin.ModelAdmin):
    list_display = ("id", "tree", "xref", "husband", "wife", "marriage_date")
    list_filter = ("tree",)
    search_fields = ("xref", "husband__name", "wife__name")
    raw_id_fields = ("husband", "wife", "children")


@admin.register(Source)
class SourceAdmin(admin.ModelAdmin):
    list_display = ("id", "tree", "xref", "title", "author")
    list_filter = ("tree",)
    search_fields = ("xref", "title", "author")


@admin.register(MediaObject)
class MediaObjectAdmin(admin.ModelAdmin):
    list_display = ("id", "tree", "xref", "title", "mime_type")
    list_filter = ("tree", "mime_type")
    search_fields = ("xref", "title", "file_reference")
    raw_id_fields = ("individuals",)


@admin.register(PendingChange)
class PendingChangeAdmin(admin.ModelAdmin):
    """Audit-friendly view of the edit history, pending and reviewed."""
    list_display = ("id", "tree", "record_type", "xref", "action", "status", "user", "created_at")
    list_filter = ("status", "action", "record_type", "tree")
    date_hierarchy = "created_at"


class BlockSettingInline(admin.TabularInline):
    model = BlockSetting
    extra = 0


@admin.register(Block)
class BlockAdmin(admin.ModelAdmin):
    list_display = ("id", "module_name", "location", "block_order", "user", "tree")
    list_filter = ("location", "module_name")
    inlines = (BlockSettingInline,)


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("id", "sender", "user", "subject", "created_at")
    search_fields = ("sender", "subject")


@admin.register(SiteLog)
class SiteLogAdmin(admin.ModelAdmin):
    list_display = ("id", "log_type", "message", "user", "tree", "ip_address", "created_at")
    list_filter = ("log_type",)
    search_fields = ("message", "request_id")
    date_hierarchy = "created_at"
