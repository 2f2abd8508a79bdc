from __future__ import annotations

from django.core.management.base import BaseCommand

from apps.shares.grants import purge_expired_grants


class Command(BaseCommand):
    help = "Delete expired share unlock grants (safe to run from cron)."

    def handle(self, *args, **opts):
        deleted = purge_expired_grants()
        self.stdout.write(self.style.SUCCESS(f"Purged {deleted} expired unlock grant(s)."))
