"""Admin registrations for the accounts app.

Notes
-----
- Admin is back-office only (not a public UI). The custom `User` reuses
  Django's `UserAdmin` with `real_name` added and the preference rows shown
  inline.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User, UserSetting


class UserSettingInline(admin.TabularInline):
    model = UserSetting
    extra = 0


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    list_display = ("username", "real_name", "email", "is_active", "is_superuser", "date_joined")
    search_fields = ("username", "real_name", "email")
    ordering = ("real_name", "username")
    fieldsets = DjangoUserAdmin.fieldsets + (("Family tree", {"fields": ("real_name",)}),)
    inlines = (UserSettingInline,)
