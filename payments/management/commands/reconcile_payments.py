from django.core.management.base import BaseCommand

from payments.exceptions import MalformedNotification, PaymentGatewayError
from payments.gateway import reprocess
from payments.models import PaymentTransaction


class Command(BaseCommand):
    help = "Replays failed and unclassified payment notifications from the gateway API."

    def add_arguments(self, parser):
        parser.add_argument('--payment-id', help="Reprocess one payment regardless of its logged outcome.")

    def handle(self, *args, **options):
        if options['payment_id']:
            payment_ids = [options['payment_id']]
        else:
            payment_ids = list(
                PaymentTransaction.objects
                .filter(outcome__in=[PaymentTransaction.Outcome.FAILED, PaymentTransaction.Outcome.UNCLASSIFIED])
                .values_list('payment_id', flat=True)
                .distinct()
            )

        for payment_id in payment_ids:
            try:
                outcome = reprocess(payment_id)
            except (PaymentGatewayError, MalformedNotification) as e:
                self.stderr.write(f"{payment_id}: {e}")
                continue
            self.stdout.write(f"{payment_id}: {outcome}")
        self.stdout.write(self.style.SUCCESS(f"Reconciled {len(payment_ids)} payment(s)."))
