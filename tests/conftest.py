import json
import uuid
from datetime import timedelta

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from events.models import Event, EventBooking
from orders.models import Product
from payments.gateway import compute_signature

WEBHOOK_URL = '/payments/yookassa/webhook/'
WEBHOOK_SECRET = 'whsec-test'


@pytest.fixture(autouse=True)
def shop_settings(settings):
    settings.PAYMENT_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    settings.DEFAULT_FROM_EMAIL = 'shop@example.com'
    settings.BOOKINGS_ADMIN_EMAIL = 'bookings@example.com'
    settings.SHOP_CURRENCY = 'GBP'
    settings.IDEMPOTENCY_KEY_TTL_DAYS = None
    return settings


@pytest.fixture
def make_user(db):
    def make(username='reader', email=None, verified=True, **extra):
        return get_user_model().objects.create_user(
            username=username,
            email=email or f'{username}@example.com',
            password='s3cret-pass',
            email_verified=verified,
            **extra,
        )
    return make


@pytest.fixture
def user(make_user):
    return make_user('reader', first_name='Rita', last_name='Reader')


@pytest.fixture
def other_user(make_user):
    return make_user('stranger')


@pytest.fixture
def make_event(db):
    def make(hours_ahead=72, capacity=10, price_minor=1000, **extra):
        return Event.objects.create(
            title=extra.pop('title', 'Poetry evening'),
            starts_at=timezone.now() + timedelta(hours=hours_ahead),
            capacity=capacity,
            price_minor=price_minor,
            currency='GBP',
            **extra,
        )
    return make


@pytest.fixture
def event(make_event):
    return make_event()


@pytest.fixture
def make_booking(db):
    def make(event, user, paid=True, payment_id='pay_booking_1', **extra):
        return EventBooking.objects.create(
            event=event,
            user=user,
            name=user.display_name,
            email=user.email,
            paid=paid,
            payment_id=payment_id,
            **extra,
        )
    return make


@pytest.fixture
def product(db):
    return Product.objects.create(name='Hardback notebook', slug='hardback-notebook', price_minor=1250)


def payment_object(payment_id='pay_1', amount='25.00', metadata=None, status='succeeded', email='',
                   currency='GBP'):
    """A payment object shaped like the gateway's JSON."""
    obj = {
        'id': payment_id,
        'status': status,
        'paid': status == 'succeeded',
        'amount': {'value': amount, 'currency': currency},
        'captured_at': '2026-03-01T12:00:00.000Z',
        'metadata': metadata or {},
        'payment_method': {
            'type': 'bank_card',
            'card': {'card_type': 'Visa', 'last4': '4242'},
        },
        'authorization_details': {'rrn': '603668680243'},
    }
    if email:
        obj['receipt'] = {'customer': {'email': email}}
    return obj


def webhook_body(obj, event='payment.succeeded') -> bytes:
    return json.dumps({'type': 'notification', 'event': event, 'object': obj}).encode('utf-8')


@pytest.fixture
def post_webhook(client):
    def post(body: bytes, signature=None):
        if signature is None:
            signature = compute_signature(body, WEBHOOK_SECRET)
        return client.post(
            WEBHOOK_URL, data=body, content_type='application/json',
            HTTP_X_PAYMENT_SIGNATURE=signature,
        )
    return post


@pytest.fixture
def booking_id():
    return uuid.uuid4()
