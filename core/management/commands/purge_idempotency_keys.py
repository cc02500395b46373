from django.conf import settings
from django.core.management.base import BaseCommand

from core.idempotency import purge_expired


class Command(BaseCommand):
    help = "Deletes idempotency records older than IDEMPOTENCY_KEY_TTL_DAYS."

    def handle(self, *args, **options):
        if not settings.IDEMPOTENCY_KEY_TTL_DAYS:
            self.stdout.write("IDEMPOTENCY_KEY_TTL_DAYS is not set, keys never expire.")
            return
        deleted = purge_expired()
        self.stdout.write(self.style.SUCCESS(f"Purged {deleted} idempotency record(s)."))
