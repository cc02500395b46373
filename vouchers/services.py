import calendar
import logging
import secrets
from datetime import datetime
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.mail import format_money, send_templated_email
from payments import services as gateway
from payments.classifier import KIND_VOUCHER, VoucherPurchase
from payments.notifications import PaymentNotification
from .models import Voucher, VoucherRedemption
from .pdf import build_qr_png, build_voucher_pdf, qr_payload

logger = logging.getLogger('vouchers')

# no 0/O, 1/I: codes are read aloud and typed from paper
CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
CODE_ATTEMPTS = 10


class VoucherError(Exception):
    pass


def add_months(dt: datetime, months: int) -> datetime:
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def generate_code(prefix: Optional[str] = None) -> str:
    """<PREFIX>-XXXX-XXXX, checked against existing codes."""
    prefix = prefix or settings.VOUCHER_CODE_PREFIX
    for _ in range(CODE_ATTEMPTS):
        body = ''.join(secrets.choice(CODE_ALPHABET) for _ in range(8))
        code = f'{prefix}-{body[:4]}-{body[4:]}'
        if not Voucher.objects.filter(code=code).exists():
            return code
    raise VoucherError("Could not generate a unique voucher code")


# --- checkout ---
def start_voucher_checkout(*, amount_minor: int, delivery: str, buyer_email: str, recipient_email: str = '',
                           to_name: str = '', from_name: str = '', message: str = '',
                           send_date=None) -> gateway.CheckoutSession:
    if amount_minor < settings.VOUCHER_MIN_AMOUNT:
        raise VoucherError(
            f"Minimum voucher value is {format_money(settings.VOUCHER_MIN_AMOUNT, settings.SHOP_CURRENCY)}"
        )
    return gateway.create_payment(
        amount_minor=amount_minor,
        currency=settings.SHOP_CURRENCY,
        description=f"{settings.SITE_NAME} gift voucher",
        metadata={
            'kind': KIND_VOUCHER,
            'delivery': delivery,
            'buyer_email': buyer_email,
            'recipient_email': recipient_email,
            'to_name': to_name,
            'from_name': from_name,
            'message': message,
            'send_date': send_date.isoformat() if send_date else '',
        },
        customer_email=buyer_email,
        return_url=gateway.return_url_for(KIND_VOUCHER),
    )


# --- issuance ---
def issue_voucher(purchase: VoucherPurchase, notification: PaymentNotification):
    """
    Creates the voucher for a paid checkout. Returns (voucher, created);
    a second call for the same payment returns the existing voucher and
    sends nothing.
    """
    if notification.amount_minor <= 0:
        raise VoucherError(f"Voucher payment {notification.session_id} has no amount")

    now = timezone.now()
    send_at = None
    if purchase.delivery == Voucher.Delivery.SCHEDULE:
        # a missing date falls through to the next scheduled run
        send_at = purchase.send_at or now

    with transaction.atomic():
        voucher, created = Voucher.objects.get_or_create(
            payment_id=notification.session_id,
            defaults={
                'code': generate_code(),
                'amount_initial_minor': notification.amount_minor,
                'amount_remaining_minor': notification.amount_minor,
                'currency': notification.currency or settings.SHOP_CURRENCY,
                'status': Voucher.Status.ACTIVE,
                'buyer_email': purchase.buyer_email,
                'recipient_email': purchase.recipient_email,
                'to_name': purchase.to_name,
                'from_name': purchase.from_name,
                'personal_message': purchase.message,
                'delivery': purchase.delivery,
                'send_at': send_at,
                'transaction_id': notification.transaction_id,
                'expires_at': add_months(now, settings.VOUCHER_VALIDITY_MONTHS),
            },
        )
        if created:
            transaction.on_commit(lambda: send_voucher_emails(voucher.pk))

    if created:
        logger.info("Voucher issued: code=%s amount=%s delivery=%s payment=%s",
                    voucher.code, voucher.amount_initial_minor, voucher.delivery, notification.session_id)
    return voucher, created


def find_by_session(payment_id: str) -> Optional[Voucher]:
    if not payment_id:
        return None
    return Voucher.objects.filter(payment_id=payment_id).first()


# --- delivery ---
def _voucher_context(voucher: Voucher) -> dict:
    return {
        'voucher': voucher,
        'amount': format_money(voucher.amount_initial_minor, voucher.currency),
        'pdf_url': f"{settings.SITE_URL}/vouchers/{voucher.code}/pdf/?sid={voucher.payment_id or ''}",
    }


def send_voucher_email(voucher: Voucher, *, to: str, printable: bool) -> bool:
    if printable:
        attachments = [(f"voucher-{voucher.code}.pdf", build_voucher_pdf(voucher), 'application/pdf')]
    else:
        attachments = [(f"voucher-{voucher.code}.png", build_qr_png(qr_payload(voucher)), 'image/png')]
    return send_templated_email(
        subject=f"{settings.SITE_NAME}: a gift voucher for you" if not printable
        else f"{settings.SITE_NAME}: your printable gift voucher",
        template='email/voucher',
        context={**_voucher_context(voucher), 'printable': printable},
        to=to,
        attachments=attachments,
    )


def send_voucher_receipt(voucher: Voucher) -> bool:
    # a gift sent to someone else keeps its code out of the buyer's inbox
    show_code = not voucher.is_gift or voucher.delivery == Voucher.Delivery.PRINT
    return send_templated_email(
        subject=f"{settings.SITE_NAME}: receipt for your gift voucher",
        template='email/voucher_receipt',
        context={**_voucher_context(voucher), 'show_code': show_code},
        to=voucher.buyer_email,
    )


def _mark_delivered(voucher: Voucher):
    voucher.delivered_at = timezone.now()
    Voucher.objects.filter(pk=voucher.pk).update(delivered_at=voucher.delivered_at)


def send_voucher_emails(voucher_id: int) -> None:
    """
    Buyer receipt always. email_now goes to the recipient (or buyer), print
    sends the PDF back to the buyer, schedule waits for deliver_scheduled().
    """
    voucher = Voucher.objects.filter(pk=voucher_id).first()
    if voucher is None:
        logger.error("send_voucher_emails: voucher %s does not exist", voucher_id)
        return

    send_voucher_receipt(voucher)

    if voucher.delivery == Voucher.Delivery.EMAIL_NOW:
        sent = send_voucher_email(voucher, to=voucher.delivery_email, printable=False)
    elif voucher.delivery == Voucher.Delivery.PRINT:
        sent = send_voucher_email(voucher, to=voucher.buyer_email, printable=True)
    else:
        return
    if sent:
        _mark_delivered(voucher)
    else:
        logger.error("Voucher delivery failed: code=%s to=%s", voucher.code, voucher.delivery_email)


def deliver_scheduled(now=None) -> int:
    now = now or timezone.now()
    due = Voucher.objects.filter(
        delivery=Voucher.Delivery.SCHEDULE,
        delivered_at__isnull=True,
        send_at__lte=now,
        status=Voucher.Status.ACTIVE,
    ).values_list('pk', flat=True)

    delivered = 0
    for pk in list(due):
        with transaction.atomic():
            # locked so overlapping runs send each voucher once
            voucher = Voucher.objects.select_for_update().get(pk=pk)
            if voucher.delivered_at is not None:
                continue
            if send_voucher_email(voucher, to=voucher.delivery_email, printable=False):
                _mark_delivered(voucher)
                delivered += 1
            else:
                logger.error("Scheduled voucher delivery failed: code=%s to=%s",
                             voucher.code, voucher.delivery_email)
    return delivered


# --- balance ---
def redeem(voucher: Voucher, amount_minor: int, *, staff_user=None, note: str = '') -> VoucherRedemption:
    """Takes amount_minor off the balance. Raises VoucherError when that is not allowed."""
    if amount_minor <= 0:
        raise VoucherError("Redemption amount must be positive.")

    with transaction.atomic():
        voucher = Voucher.objects.select_for_update().get(pk=voucher.pk)
        if voucher.status != Voucher.Status.ACTIVE:
            raise VoucherError(f"Voucher {voucher.code} is {voucher.get_status_display().lower()}.")
        if voucher.is_expired:
            raise VoucherError(f"Voucher {voucher.code} has expired.")
        if amount_minor > voucher.amount_remaining_minor:
            raise VoucherError(
                f"Voucher {voucher.code} has only "
                f"{format_money(voucher.amount_remaining_minor, voucher.currency)} left."
            )

        voucher.amount_remaining_minor -= amount_minor
        if voucher.amount_remaining_minor == 0:
            voucher.status = Voucher.Status.REDEEMED
        voucher.save(update_fields=['amount_remaining_minor', 'status', 'updated_at'])
        redemption = VoucherRedemption.objects.create(
            voucher=voucher, amount_minor=amount_minor, redeemed_by=staff_user, note=note,
        )

    logger.info("Voucher redeemed: code=%s amount=%s remaining=%s",
                voucher.code, amount_minor, voucher.amount_remaining_minor)
    return redemption


def void_voucher(voucher: Voucher) -> Voucher:
    with transaction.atomic():
        voucher = Voucher.objects.select_for_update().get(pk=voucher.pk)
        if voucher.status == Voucher.Status.ACTIVE:
            voucher.status = Voucher.Status.VOID
            voucher.save(update_fields=['status', 'updated_at'])
            logger.info("Voucher voided: code=%s remaining=%s", voucher.code, voucher.amount_remaining_minor)
    return voucher
