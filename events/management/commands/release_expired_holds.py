from django.core.management.base import BaseCommand

from events.services import release_expired_holds


class Command(BaseCommand):
    help = "Frees seats held by checkouts that were never paid."

    def handle(self, *args, **options):
        released = release_expired_holds()
        self.stdout.write(self.style.SUCCESS(f"Released {released} expired hold(s)."))
