"""
Entity classifier: decides which domain a successful payment belongs to.

The metadata bag attached at checkout is validated here once and turned
into one of three purchase types. Downstream writers never read the raw
metadata. ``kind`` is authoritative; ancillary fields never override it.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional, Tuple, Union

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .exceptions import ClassificationError

KIND_VOUCHER = 'voucher'
KIND_EVENT = 'event'
KIND_STORE = 'store'

DELIVERY_EMAIL_NOW = 'email_now'
DELIVERY_SCHEDULE = 'schedule'
DELIVERY_PRINT = 'print'
DELIVERY_MODES = (DELIVERY_EMAIL_NOW, DELIVERY_SCHEDULE, DELIVERY_PRINT)


@dataclass(frozen=True)
class VoucherPurchase:
    delivery: str
    buyer_email: str
    recipient_email: str = ''
    to_name: str = ''
    from_name: str = ''
    message: str = ''
    send_at: Optional[datetime] = None


@dataclass(frozen=True)
class EventPurchase:
    event_id: int
    booking_id: uuid.UUID
    user_id: int
    name: str = ''
    email: str = ''


@dataclass(frozen=True)
class LineItem:
    product_id: int
    quantity: int
    unit_price_minor: int


@dataclass(frozen=True)
class StorePurchase:
    items: Tuple[LineItem, ...]
    user_id: Optional[int] = None
    guest_token: str = ''
    email: str = ''

    @property
    def is_guest(self) -> bool:
        return self.user_id is None


Purchase = Union[VoucherPurchase, EventPurchase, StorePurchase]


# --- line items travel as "product_id:quantity:unit_price" joined by commas ---
def encode_line_items(items) -> str:
    return ','.join(f'{i.product_id}:{i.quantity}:{i.unit_price_minor}' for i in items)


def decode_line_items(raw: str) -> Tuple[LineItem, ...]:
    items = []
    for chunk in (raw or '').split(','):
        chunk = chunk.strip()
        if not chunk:
            continue
        try:
            product_id, quantity, price = (int(p) for p in chunk.split(':'))
        except ValueError as e:
            raise ClassificationError(f"Bad line item {chunk!r}") from e
        if quantity < 1 or price < 0:
            raise ClassificationError(f"Bad line item {chunk!r}")
        items.append(LineItem(product_id=product_id, quantity=quantity, unit_price_minor=price))
    return tuple(items)


def parse_send_at(raw: str) -> Optional[datetime]:
    """Accepts an ISO datetime or a plain date (delivered at 09:00 local time)."""
    raw = (raw or '').strip()
    if not raw:
        return None
    try:
        dt = parse_datetime(raw)
        if dt is None:
            d = parse_date(raw)
            if d is None:
                return None
            dt = datetime.combine(d, time(9, 0))
    except ValueError:
        return None
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt)
    return dt


def _as_int(md: dict, name: str) -> int:
    try:
        return int(md[name])
    except (KeyError, TypeError, ValueError) as e:
        raise ClassificationError(f"Missing or invalid {name}") from e


def _classify_voucher(md: dict, buyer_email: str) -> VoucherPurchase:
    delivery = md.get('delivery')
    if delivery not in DELIVERY_MODES:
        delivery = DELIVERY_EMAIL_NOW
    buyer = (md.get('buyer_email') or buyer_email or '').strip().lower()
    if not buyer:
        raise ClassificationError("Voucher purchase without buyer email")
    return VoucherPurchase(
        delivery=delivery,
        buyer_email=buyer,
        recipient_email=(md.get('recipient_email') or '').strip().lower(),
        to_name=md.get('to_name') or '',
        from_name=md.get('from_name') or '',
        message=md.get('message') or '',
        send_at=parse_send_at(md.get('send_date') or ''),
    )


def _classify_event(md: dict, buyer_email: str) -> EventPurchase:
    event_id = _as_int(md, 'event_id')
    user_id = _as_int(md, 'user_id')
    try:
        booking_id = uuid.UUID(md['booking_id'])
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ClassificationError("Missing or invalid booking_id") from e
    return EventPurchase(
        event_id=event_id,
        booking_id=booking_id,
        user_id=user_id,
        name=md.get('name') or '',
        email=(md.get('email') or buyer_email or '').strip().lower(),
    )


def _classify_store(md: dict, buyer_email: str) -> StorePurchase:
    items = decode_line_items(md.get('items', ''))
    if md.get('user_id'):
        return StorePurchase(items=items, user_id=_as_int(md, 'user_id'))

    guest_token = (md.get('guest_token') or '').strip()
    email = (buyer_email or md.get('email') or '').strip().lower()
    if not guest_token or not email:
        raise ClassificationError("Store purchase is neither a user nor an identifiable guest")
    return StorePurchase(items=items, guest_token=guest_token, email=email)


def classify(metadata: dict, buyer_email: str = '') -> Purchase:
    md = metadata or {}
    kind = md.get('kind') or ''

    if kind == KIND_VOUCHER or (not kind and 'delivery' in md):
        return _classify_voucher(md, buyer_email)
    if kind == KIND_EVENT:
        return _classify_event(md, buyer_email)
    return _classify_store(md, buyer_email)


def kind_of(purchase: Purchase) -> str:
    if isinstance(purchase, VoucherPurchase):
        return KIND_VOUCHER
    if isinstance(purchase, EventPurchase):
        return KIND_EVENT
    return KIND_STORE
