"""
Payment Event Gateway: turns verified gateway notifications into domain writes.

Every notification that passes signature and shape checks is acknowledged.
Business failures are recorded on the ``PaymentTransaction`` log for
``reconcile_payments`` instead of being bounced back to the sender.
"""
import base64
import hashlib
import hmac
import logging
from typing import Optional

from django.conf import settings
from django.db.models import F

from events.models import EventBooking
from events.services import confirm_paid_booking
from orders.models import GuestOrder, Order
from orders.services import record_store_order
from vouchers.models import Voucher
from vouchers.services import issue_voucher
from . import services
from .classifier import EventPurchase, StorePurchase, VoucherPurchase, classify, kind_of
from .exceptions import ClassificationError, SignatureError
from .models import PaymentTransaction
from .notifications import PAYMENT_SUCCEEDED, PaymentNotification, from_payment_object, parse_notification

logger = logging.getLogger('payments')

SIGNATURE_HEADER = 'X-Payment-Signature'


# --- authentication ---
def compute_signature(raw_body: bytes, secret: Optional[str] = None) -> str:
    secret = secret if secret is not None else settings.PAYMENT_WEBHOOK_SECRET
    digest = hmac.new(secret.encode('utf-8'), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode('ascii')


def verify_signature(raw_body: bytes, signature: str) -> None:
    """Raises SignatureError unless the header matches the raw body."""
    if not settings.PAYMENT_WEBHOOK_SECRET:
        raise SignatureError("PAYMENT_WEBHOOK_SECRET is not configured")
    if not signature:
        raise SignatureError("Missing signature header")
    if not hmac.compare_digest(compute_signature(raw_body), signature.strip()):
        raise SignatureError("Signature mismatch")


# --- log ---
def _log(notification: PaymentNotification, outcome: str, *, kind: str = '', error: str = '') -> str:
    existing = PaymentTransaction.objects.filter(payment_id=notification.session_id, event=notification.event)
    if outcome == PaymentTransaction.Outcome.DUPLICATE:
        # keep what the first delivery did, unless it still needs attention
        settled = existing.exclude(outcome__in=[PaymentTransaction.Outcome.FAILED,
                                                PaymentTransaction.Outcome.UNCLASSIFIED])
        if settled.update(deliveries=F('deliveries') + 1):
            return outcome

    pt, created = PaymentTransaction.objects.update_or_create(
        payment_id=notification.session_id,
        event=notification.event,
        defaults={
            "status": notification.status,
            "kind": kind,
            "outcome": outcome,
            "error": error,
            "amount_minor": notification.amount_minor,
            "currency": notification.currency,
            "payload": notification.payload,
        },
    )
    if not created:
        PaymentTransaction.objects.filter(pk=pt.pk).update(deliveries=F('deliveries') + 1)
    return outcome


def already_recorded(payment_id: str) -> bool:
    """True when any domain row was already written for this checkout."""
    return (
        Voucher.objects.filter(payment_id=payment_id).exists()
        or EventBooking.objects.filter(payment_id=payment_id).exists()
        or Order.objects.filter(payment_id=payment_id).exists()
        or GuestOrder.objects.filter(payment_id=payment_id).exists()
    )


# --- processing ---
def dispatch(purchase, notification: PaymentNotification):
    """Hands a classified purchase to its writer. Returns (row, created)."""
    if isinstance(purchase, VoucherPurchase):
        return issue_voucher(purchase, notification)
    if isinstance(purchase, EventPurchase):
        return confirm_paid_booking(purchase, notification)
    if isinstance(purchase, StorePurchase):
        return record_store_order(purchase, notification)
    raise ClassificationError(f"No writer for {type(purchase).__name__}")


def process(notification: PaymentNotification) -> str:
    """Runs one parsed notification through the pipeline and returns the logged outcome."""
    sid = notification.session_id

    if not notification.is_success:
        logger.info("Notification ignored: event=%s payment=%s", notification.event, sid)
        return _log(notification, PaymentTransaction.Outcome.IGNORED)

    if already_recorded(sid):
        logger.info("Duplicate notification: payment=%s", sid)
        return _log(notification, PaymentTransaction.Outcome.DUPLICATE)

    try:
        purchase = classify(notification.metadata, notification.buyer_email)
    except ClassificationError as e:
        logger.error("Unclassified payment %s: %s (metadata=%s)", sid, e, notification.metadata)
        return _log(notification, PaymentTransaction.Outcome.UNCLASSIFIED, error=str(e))

    kind = kind_of(purchase)
    try:
        _, created = dispatch(purchase, notification)
    except Exception as e:
        # acknowledged anyway: the sender retrying would not fix a business failure
        logger.exception("Payment %s (%s) failed to process", sid, kind)
        return _log(notification, PaymentTransaction.Outcome.FAILED, kind=kind, error=str(e))

    outcome = PaymentTransaction.Outcome.PROCESSED if created else PaymentTransaction.Outcome.DUPLICATE
    logger.info("Payment %s processed as %s: %s", sid, kind, outcome)
    return _log(notification, outcome, kind=kind)


def handle_notification(raw_body: bytes, signature: str) -> str:
    """
    Verifies and processes one webhook delivery. SignatureError and
    MalformedNotification propagate; everything past that is acknowledged.
    """
    verify_signature(raw_body, signature)
    notification = parse_notification(raw_body)
    return process(notification)


def reprocess(payment_id: str) -> str:
    """Re-fetches a payment over the authenticated API and replays it."""
    obj = services.find_payment(payment_id)
    status = obj.get('status') or ''
    event = PAYMENT_SUCCEEDED if status == 'succeeded' else f'payment.{status}'
    return process(from_payment_object(obj, event=event))
