import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from django.utils.dateparse import parse_datetime

from .exceptions import MalformedNotification
from .services import from_gateway_amount

PAYMENT_SUCCEEDED = 'payment.succeeded'


@dataclass(frozen=True)
class PaymentNotification:
    """One payment outcome reported by the gateway. Drives writes, never stored as is."""
    event: str
    session_id: str             # gateway payment id, one per checkout attempt
    status: str
    amount_minor: int
    currency: str
    metadata: dict
    buyer_email: str = ''
    transaction_id: str = ''    # bank retrieval reference, when the gateway reports one
    card_brand: str = ''
    card_last4: str = ''
    paid_at: Optional[datetime] = None
    receipt_url: str = ''
    payload: dict = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_success(self) -> bool:
        return self.event == PAYMENT_SUCCEEDED


def _parse_dt(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parse_datetime(str(value))
    except ValueError:
        return None


def _section(obj: dict, name: str) -> dict:
    value = obj.get(name) or {}
    if not isinstance(value, dict):
        raise MalformedNotification(f"{name} is not an object")
    return value


def from_payment_object(obj: dict, *, event: str = PAYMENT_SUCCEEDED, payload: Optional[dict] = None) -> PaymentNotification:
    payment_id = obj.get('id')
    if not payment_id:
        raise MalformedNotification("No payment id")

    amount = _section(obj, 'amount')
    metadata = _section(obj, 'metadata')
    card = _section(_section(obj, 'payment_method'), 'card')
    customer = _section(_section(obj, 'receipt'), 'customer')
    auth = _section(obj, 'authorization_details')

    try:
        amount_minor = from_gateway_amount(amount.get('value'))
    except ArithmeticError as e:
        raise MalformedNotification(f"Bad amount: {amount.get('value')!r}") from e

    return PaymentNotification(
        event=event,
        session_id=str(payment_id),
        status=str(obj.get('status') or ''),
        amount_minor=amount_minor,
        currency=str(amount.get('currency') or '').upper(),
        metadata={str(k): str(v) for k, v in metadata.items()},
        buyer_email=str(metadata.get('email') or customer.get('email') or '').strip().lower(),
        transaction_id=str(auth.get('rrn') or ''),
        card_brand=str(card.get('card_type') or ''),
        card_last4=str(card.get('last4') or ''),
        paid_at=_parse_dt(obj.get('captured_at')),
        receipt_url=str(obj.get('receipt_url') or ''),
        payload=payload if payload is not None else obj,
    )


def parse_notification(raw_body: bytes) -> PaymentNotification:
    try:
        payload = json.loads(raw_body.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedNotification("Bad JSON") from e
    if not isinstance(payload, dict):
        raise MalformedNotification("Notification is not an object")

    obj = payload.get('object')
    if not isinstance(obj, dict):
        raise MalformedNotification("No payment object")
    return from_payment_object(obj, event=str(payload.get('event') or ''), payload=payload)
