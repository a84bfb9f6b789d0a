"""AppConfig for the `core` app.

Scope
-----
Holds shared infrastructure pieces used across the project:
- middleware (request size limit, user language, request-id logging),
- logging helpers (request-id contextvar and filter),
- idempotency persistence, permissions, throttles and concurrency helpers.
"""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Standard Django AppConfig; keep defaults lightweight."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "core"
