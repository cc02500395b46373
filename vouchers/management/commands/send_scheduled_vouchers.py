from django.core.management.base import BaseCommand

from vouchers.services import deliver_scheduled


class Command(BaseCommand):
    help = "Emails scheduled gift vouchers whose delivery date has come."

    def handle(self, *args, **options):
        delivered = deliver_scheduled()
        self.stdout.write(self.style.SUCCESS(f"Delivered {delivered} scheduled voucher(s)."))
