from types import SimpleNamespace
from unittest import mock

import pytest
from django.core.management import call_command

from payments import services
from payments.exceptions import MalformedNotification, PaymentGatewayError
from payments.models import PaymentTransaction
from payments.notifications import parse_notification
from tests.conftest import payment_object, webhook_body


@pytest.mark.parametrize('minor, value', [(0, '0.00'), (5, '0.05'), (1250, '12.50'), (100000, '1000.00')])
def test_amount_conversion(minor, value):
    assert services.to_gateway_amount(minor, 'gbp') == {'value': value, 'currency': 'GBP'}
    assert services.from_gateway_amount(value) == minor


def test_create_payment_payload(settings):
    settings.YOO_KASSA_RETURN_URL = 'https://shop.example/payments/return/'
    payment = SimpleNamespace(id='pay_1', confirmation=SimpleNamespace(confirmation_url='https://pay.example/1'))
    with mock.patch('payments.services.Payment') as Payment:
        Payment.create.return_value = payment
        session = services.create_payment(
            amount_minor=2500, currency='GBP', description='Gift voucher',
            metadata={'kind': 'voucher', 'user_id': 7, 'send_date': ''},
            customer_email='buyer@example.com', return_url=services.return_url_for('voucher'),
        )

    assert session == services.CheckoutSession(payment_id='pay_1', confirmation_url='https://pay.example/1')
    payload, idempotence_key = Payment.create.call_args.args
    assert payload['amount'] == {'value': '25.00', 'currency': 'GBP'}
    assert payload['metadata'] == {'kind': 'voucher', 'user_id': '7'}
    assert payload['confirmation']['return_url'] == 'https://shop.example/payments/return/?kind=voucher'
    assert payload['receipt'] == {'customer': {'email': 'buyer@example.com'}}
    assert idempotence_key


def test_create_payment_failure_is_wrapped():
    with mock.patch('payments.services.Payment') as Payment:
        Payment.create.side_effect = RuntimeError('timeout')
        with pytest.raises(PaymentGatewayError):
            services.create_payment(amount_minor=100, currency='GBP', description='x', metadata={})


def test_refund_uses_the_idempotence_key():
    refund = SimpleNamespace(id='rf_1', status='succeeded', created_at='2026-03-02T10:00:00.000Z')
    with mock.patch('payments.services.Refund') as Refund:
        Refund.create.return_value = refund
        result = services.refund_payment('pay_1', amount_minor=1000, currency='GBP', idempotence_key='refund-abc')

    Refund.create.assert_called_once_with(
        {'payment_id': 'pay_1', 'amount': {'value': '10.00', 'currency': 'GBP'}}, 'refund-abc',
    )
    assert result.refund_id == 'rf_1'
    assert result.created_at.day == 2


def test_declined_refund_is_an_error():
    with mock.patch('payments.services.Refund') as Refund:
        Refund.create.return_value = SimpleNamespace(id='rf_2', status='canceled', created_at=None)
        with pytest.raises(PaymentGatewayError):
            services.refund_payment('pay_1', amount_minor=1000, currency='GBP', idempotence_key='k')


def test_find_payment_not_found():
    with mock.patch('payments.services.Payment') as Payment:
        Payment.find_one.return_value = None
        with pytest.raises(PaymentGatewayError):
            services.find_payment('pay_missing')


def test_parse_notification_fields():
    body = webhook_body(payment_object('pay_n', amount='12.50', metadata={'kind': 'store', 'user_id': 3},
                                       email='Buyer@Example.com'))
    n = parse_notification(body)
    assert n.is_success
    assert n.session_id == 'pay_n'
    assert (n.amount_minor, n.currency) == (1250, 'GBP')
    assert n.metadata == {'kind': 'store', 'user_id': '3'}
    assert n.buyer_email == 'buyer@example.com'
    assert (n.card_brand, n.card_last4, n.transaction_id) == ('Visa', '4242', '603668680243')
    assert n.paid_at is not None


@pytest.mark.parametrize('body', [b'', b'[]', b'{"event": "payment.succeeded", "object": {}}'])
def test_parse_notification_rejects_garbage(body):
    with pytest.raises(MalformedNotification):
        parse_notification(body)


@pytest.mark.parametrize('field, value', [
    ('metadata', ['kind', 'store']),
    ('amount', '12.50'),
    ('payment_method', ['bank_card']),
    ('receipt', 'r-1'),
    ('authorization_details', 603668680243),
])
def test_non_object_sections_are_malformed(field, value):
    obj = payment_object('pay_bad', email='buyer@example.com')
    obj[field] = value
    with pytest.raises(MalformedNotification):
        parse_notification(webhook_body(obj))


def test_nested_card_must_be_an_object():
    obj = payment_object('pay_bad')
    obj['payment_method']['card'] = '4242'
    with pytest.raises(MalformedNotification):
        parse_notification(webhook_body(obj))


@pytest.mark.django_db
def test_payment_return_reports_status(client):
    with mock.patch('payments.services.find_payment', return_value={'status': 'succeeded'}):
        data = client.get('/payments/return/', {'kind': 'voucher', 'sid': 'pay_1'}).json()
    assert data == {'kind': 'voucher', 'session_id': 'pay_1', 'status': 'succeeded', 'recorded': False}


@pytest.mark.django_db
def test_reconcile_replays_failed_payments(post_webhook, user, product):
    metadata = {'kind': 'store', 'user_id': user.pk, 'items': f'{product.pk}:1:1250'}
    obj = payment_object('pay_rc', amount='12.50', metadata={**metadata, 'user_id': user.pk + 50})
    post_webhook(webhook_body(obj))

    with mock.patch('payments.services.find_payment', return_value=payment_object(
            'pay_rc', amount='12.50', metadata=metadata)):
        call_command('reconcile_payments')

    assert PaymentTransaction.objects.get(payment_id='pay_rc').outcome == PaymentTransaction.Outcome.PROCESSED
