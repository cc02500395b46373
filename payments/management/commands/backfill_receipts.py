from django.core.management.base import BaseCommand
from django.db.models import Q

from orders.models import Order
from orders.services import backfill_receipt
from payments.exceptions import MalformedNotification, PaymentGatewayError


class Command(BaseCommand):
    help = "Fills missing card and receipt details on completed orders from the gateway."

    def add_arguments(self, parser):
        parser.add_argument('--limit', type=int, default=200)

    def handle(self, *args, **options):
        orders = (Order.objects
                  .filter(status=Order.Status.COMPLETED, payment_id__isnull=False)
                  .filter(Q(card_last4='') | Q(paid_at__isnull=True))
                  .order_by('-created_at')[:options['limit']])

        updated = 0
        for order in orders:
            try:
                if backfill_receipt(order):
                    updated += 1
            except (PaymentGatewayError, MalformedNotification) as e:
                self.stderr.write(f"Order {order.pk}: {e}")
        self.stdout.write(self.style.SUCCESS(f"Backfilled {updated} order(s)."))
