"""
AppConfig for the `genealogy` domain app.

Startup responsibilities
------------------------
- Import **signals** at startup (required): new users receive the default
  home-page blocks and a registration timestamp; deleting an individual
  unlinks the users pointing at it.
- Import **schema** (optional): shared drf-spectacular components. In DEBUG we
  still surface errors to catch schema issues early.

Reliability notes
-----------------
- Django's autoreloader may call `ready()` multiple times; all receivers use
  `dispatch_uid`, and imports are idempotent, so repeated calls are safe.
"""

from __future__ import annotations

import logging
from importlib import import_module

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class GenealogyConfig(AppConfig):
    """Trees, records, moderation, blocks, messages and the site log."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "genealogy"

    def ready(self) -> None:  # pragma: no cover
        self._import_startup_module("genealogy.signals", required=True)
        self._import_startup_module("genealogy.schema", required=False)

    @staticmethod
    def _import_startup_module(dotted_path: str, *, required: bool) -> None:
        """
        Import a module at startup.

        - If `required` and import fails: log and re-raise (fail fast).
        - If not required: re-raise in DEBUG, otherwise log a warning and continue.
        """
        try:
            import_module(dotted_path)
        except Exception:
            if required or settings.DEBUG:
                logger.exception("Failed to import startup module: %s", dotted_path)
                raise
            logger.warning("Optional startup module failed to import and was skipped: %s", dotted_path)
