import uuid

import pytest

from payments.classifier import (
    EventPurchase, LineItem, StorePurchase, VoucherPurchase, classify, decode_line_items,
    encode_line_items, kind_of,
)
from payments.exceptions import ClassificationError


def test_voucher_kind_wins_over_user_id():
    purchase = classify({'kind': 'voucher', 'delivery': 'print', 'user_id': '7', 'buyer_email': 'A@Example.com'})
    assert isinstance(purchase, VoucherPurchase)
    assert purchase.delivery == 'print'
    assert purchase.buyer_email == 'a@example.com'


def test_delivery_without_kind_is_a_voucher():
    purchase = classify({'delivery': 'email_now', 'recipient_email': 'friend@example.com'}, buyer_email='me@example.com')
    assert isinstance(purchase, VoucherPurchase)
    assert purchase.buyer_email == 'me@example.com'
    assert purchase.recipient_email == 'friend@example.com'


def test_unknown_delivery_falls_back_to_email_now():
    purchase = classify({'kind': 'voucher', 'delivery': 'carrier-pigeon'}, buyer_email='me@example.com')
    assert purchase.delivery == 'email_now'


def test_voucher_without_buyer_is_unclassified():
    with pytest.raises(ClassificationError):
        classify({'kind': 'voucher', 'delivery': 'email_now'})


def test_schedule_date_is_parsed():
    purchase = classify({'kind': 'voucher', 'delivery': 'schedule', 'send_date': '2030-12-24'},
                        buyer_email='me@example.com')
    assert purchase.send_at is not None
    assert (purchase.send_at.year, purchase.send_at.month, purchase.send_at.day) == (2030, 12, 24)


def test_event_purchase():
    booking_id = uuid.uuid4()
    purchase = classify({
        'kind': 'event', 'event_id': '3', 'user_id': '5', 'booking_id': str(booking_id), 'name': 'Rita',
    }, buyer_email='rita@example.com')
    assert purchase == EventPurchase(event_id=3, booking_id=booking_id, user_id=5, name='Rita',
                                     email='rita@example.com')
    assert kind_of(purchase) == 'event'


@pytest.mark.parametrize('missing', ['event_id', 'user_id', 'booking_id'])
def test_event_purchase_requires_ids(missing):
    metadata = {'kind': 'event', 'event_id': '3', 'user_id': '5', 'booking_id': str(uuid.uuid4())}
    del metadata[missing]
    with pytest.raises(ClassificationError):
        classify(metadata)


def test_store_purchase_for_signed_in_user():
    purchase = classify({'kind': 'store', 'user_id': '9', 'items': '1:2:1250,4:1:300'})
    assert isinstance(purchase, StorePurchase)
    assert not purchase.is_guest
    assert purchase.items == (LineItem(1, 2, 1250), LineItem(4, 1, 300))


def test_store_purchase_for_guest():
    purchase = classify({'items': '1:1:500', 'guest_token': 'tok'}, buyer_email='Guest@Example.com')
    assert purchase.is_guest
    assert purchase.email == 'guest@example.com'
    assert purchase.guest_token == 'tok'


def test_unattributable_store_purchase():
    with pytest.raises(ClassificationError):
        classify({'items': '1:1:500'}, buyer_email='guest@example.com')


def test_unknown_kind_takes_store_path():
    purchase = classify({'kind': 'subscription', 'user_id': '2', 'items': ''})
    assert isinstance(purchase, StorePurchase)
    assert purchase.items == ()


@pytest.mark.parametrize('raw', ['1:2', 'x:1:100', '1:0:100', '1:1:-5'])
def test_bad_line_items(raw):
    with pytest.raises(ClassificationError):
        decode_line_items(raw)


def test_line_item_encoding():
    items = [LineItem(12, 3, 999), LineItem(1, 1, 0)]
    assert encode_line_items(items) == '12:3:999,1:1:0'
    assert decode_line_items(encode_line_items(items)) == tuple(items)
