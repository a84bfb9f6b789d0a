"""Django AppConfig for the accounts app.

This app houses the custom user model (`accounts.User`), its preference rows
and the authentication / user administration API.
"""

from django.apps import AppConfig


class AccountsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "accounts"
