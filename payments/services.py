import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from yookassa import Configuration, Payment, Refund

from .exceptions import PaymentGatewayError

logger = logging.getLogger('payments')


@dataclass(frozen=True)
class CheckoutSession:
    payment_id: str
    confirmation_url: str


@dataclass(frozen=True)
class RefundResult:
    refund_id: str
    status: str
    created_at: datetime


def _yk_configure():
    # the SDK is configured globally
    Configuration.account_id = settings.YOO_KASSA_SHOP_ID
    Configuration.secret_key = settings.YOO_KASSA_SECRET_KEY


def to_gateway_amount(amount_minor: int, currency: str) -> dict:
    value = (Decimal(amount_minor) / 100).quantize(Decimal('0.01'))
    return {"value": str(value), "currency": currency.upper()}


def from_gateway_amount(value) -> int:
    """'12.50' -> 1250"""
    return int((Decimal(str(value or '0')) * 100).quantize(Decimal('1')))


def return_url_for(kind: str) -> str:
    return f"{settings.YOO_KASSA_RETURN_URL}?kind={kind}"


def create_payment(*, amount_minor: int, currency: str, description: str, metadata: dict,
                   return_url: Optional[str] = None, customer_email: str = '') -> CheckoutSession:
    """
    Starts a redirect checkout and returns the gateway payment id (the
    external session id) with the URL the buyer is sent to.
    """
    _yk_configure()
    payload = {
        "amount": to_gateway_amount(amount_minor, currency),
        "confirmation": {
            "type": "redirect",
            "return_url": return_url or settings.YOO_KASSA_RETURN_URL,
        },
        "capture": True,
        "description": description[:128],
        # gateway metadata values must be strings
        "metadata": {k: str(v) for k, v in metadata.items() if v not in (None, '')},
    }
    if customer_email:
        payload["receipt"] = {"customer": {"email": customer_email}}

    try:
        payment = Payment.create(payload, str(uuid.uuid4()))
    except Exception as e:
        logger.exception("Payment create failed: kind=%s", metadata.get('kind'))
        raise PaymentGatewayError(f"Failed to start checkout: {e}") from e

    return CheckoutSession(payment_id=payment.id, confirmation_url=payment.confirmation.confirmation_url)


def find_payment(payment_id: str) -> dict:
    """Fetches the payment object as a plain dict, same shape as in webhook bodies."""
    _yk_configure()
    try:
        payment = Payment.find_one(payment_id)
    except Exception as e:
        raise PaymentGatewayError(f"Payment {payment_id} lookup failed: {e}") from e
    if payment is None:
        raise PaymentGatewayError(f"Payment {payment_id} not found")
    return json.loads(payment.json())


def refund_payment(payment_id: str, *, amount_minor: int, currency: str,
                   idempotence_key: str) -> RefundResult:
    """
    Refunds a captured payment. The idempotence key makes a retry return the
    refund created the first time instead of issuing a second one.
    """
    _yk_configure()
    try:
        refund = Refund.create({
            "payment_id": payment_id,
            "amount": to_gateway_amount(amount_minor, currency),
        }, idempotence_key)
    except Exception as e:
        raise PaymentGatewayError(f"Refund for payment {payment_id} failed: {e}") from e

    if refund.status == 'canceled':
        raise PaymentGatewayError(f"Refund for payment {payment_id} was declined")

    created_at = parse_datetime(str(refund.created_at or '')) or timezone.now()
    logger.info("Refund issued: payment=%s refund=%s status=%s", payment_id, refund.id, refund.status)
    return RefundResult(refund_id=refund.id, status=refund.status, created_at=created_at)
