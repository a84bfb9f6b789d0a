from __future__ import annotations

"""
Prune stored idempotent responses (GEDCOM import replays).

Overview
--------
- Deletes `core.IdempotencyKey` rows created before a cutoff (default 24h).
- `--dry-run` only reports how many rows would go.
- Safe to run from cron.

Usage
-----
    python manage.py cleanup_idempotency --hours 48
    python manage.py cleanup_idempotency --dry-run
"""

from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from core.models import IdempotencyKey


class Command(BaseCommand):
    help = "Delete stored idempotent responses older than --hours (default 24)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--hours",
            type=int,
            default=24,
            help="Delete records older than this many hours (default 24).",
        )
        parser.add_argument("--dry-run", action="store_true", help="Report the count without deleting.")

    def handle(self, *args, **options):
        hours = int(options["hours"])
        if hours < 0:
            raise CommandError("--hours must be zero or positive.")

        stale = IdempotencyKey.objects.filter(created_at__lt=timezone.now() - timedelta(hours=hours))
        count = stale.count()
        if options["dry_run"]:
            self.stdout.write(f"{count} idempotency records older than {hours}h would be deleted.")
            return
        stale.delete()
        self.stdout.write(self.style.SUCCESS(f"Deleted {count} idempotency records older than {hours}h."))
