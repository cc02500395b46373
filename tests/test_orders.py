from datetime import timedelta
from unittest import mock

import pytest
from django.contrib.auth import get_user_model
from django.core import mail
from django.core.management import call_command
from django.utils import timezone

from orders.models import GuestOrder, GuestOrderItem, Order
from orders.services import OrderError, record_store_order, resolve_cart_lines, start_store_checkout
from payments.classifier import LineItem, StorePurchase
from payments.notifications import from_payment_object
from payments.services import CheckoutSession
from tests.conftest import payment_object
from users.guest import GUEST_COOKIE

pytestmark = pytest.mark.django_db


@pytest.fixture
def guest_order(product):
    order = GuestOrder.objects.create(
        email='reader@example.com', guest_token='tok-1', total_minor=2500, currency='GBP',
        status=GuestOrder.Status.COMPLETED, payment_id='pay_guest', card_brand='Visa', card_last4='4242',
    )
    GuestOrderItem.objects.create(order=order, product=product, description=product.name,
                                  quantity=2, unit_price_minor=1250)
    GuestOrder.objects.filter(pk=order.pk).update(created_at=timezone.now() - timedelta(days=3))
    order.refresh_from_db()
    return order


class TestRecordStoreOrder:
    def test_redelivery_returns_existing_order(self, user, product, django_capture_on_commit_callbacks):
        purchase = StorePurchase(items=(LineItem(product.pk, 1, 1250),), user_id=user.pk)
        notification = from_payment_object(payment_object('pay_o', amount='12.50'))

        with django_capture_on_commit_callbacks(execute=True):
            order, created = record_store_order(purchase, notification)
            again, created_again = record_store_order(purchase, notification)

        assert created and not created_again
        assert order.pk == again.pk
        assert order.items.count() == 1
        assert [m.to for m in mail.outbox] == [[user.email]]

    def test_deleted_product_keeps_its_line(self, user):
        purchase = StorePurchase(items=(LineItem(404, 1, 500),), user_id=user.pk)
        order, _ = record_store_order(purchase, from_payment_object(payment_object('pay_d', amount='5.00')))
        item = order.items.get()
        assert item.product is None
        assert item.description == 'Product #404'


class TestCheckout:
    def test_cart_lines_use_live_products(self, product):
        lines = resolve_cart_lines([{'product_id': product.pk, 'quantity': 3}])
        assert lines == [(product, 3)]

    @pytest.mark.parametrize('raw', [None, [], [{'product_id': 'x'}], [{'product_id': 1, 'quantity': 0}]])
    def test_bad_carts(self, raw):
        with pytest.raises(OrderError):
            resolve_cart_lines(raw)

    def test_inactive_product_is_refused(self, product):
        product.is_active = False
        product.save()
        with pytest.raises(OrderError):
            resolve_cart_lines([{'product_id': product.pk}])

    def test_signed_in_checkout_metadata(self, user, product):
        session = CheckoutSession(payment_id='pay_c', confirmation_url='https://pay.example/c')
        with mock.patch('payments.services.create_payment', return_value=session) as create:
            start_store_checkout([(product, 2)], user=user)
        kwargs = create.call_args.kwargs
        assert kwargs['amount_minor'] == 2500
        assert kwargs['metadata'] == {'kind': 'store', 'items': f'{product.pk}:2:1250', 'user_id': user.pk}
        assert kwargs['customer_email'] == user.email

    def test_guest_checkout_sets_cookie(self, client, product):
        session = CheckoutSession(payment_id='pay_c', confirmation_url='https://pay.example/c')
        with mock.patch('payments.services.create_payment', return_value=session) as create:
            response = client.post('/orders/checkout/', {
                'items': [{'product_id': product.pk, 'quantity': 1}], 'email': 'Guest@Example.com',
            }, content_type='application/json')

        assert response.status_code == 200
        token = response.cookies[GUEST_COOKIE].value
        metadata = create.call_args.kwargs['metadata']
        assert metadata['guest_token'] == token
        assert metadata['email'] == 'guest@example.com'

    def test_guest_checkout_needs_email(self, client, product):
        with mock.patch('payments.services.create_payment') as create:
            response = client.post('/orders/checkout/', {'items': [{'product_id': product.pk}]},
                                   content_type='application/json')
        assert response.status_code == 400
        create.assert_not_called()


class TestGuestMerge:
    def test_login_moves_guest_orders_into_account(self, client, make_user, guest_order, product):
        user = make_user('reader', email='Reader@Example.com')
        created_at = guest_order.created_at

        client.force_login(user)

        assert not GuestOrder.objects.exists()
        order = Order.objects.get(user=user)
        assert order.payment_id == 'pay_guest'
        assert order.total_minor == 2500
        assert (order.card_brand, order.card_last4) == ('Visa', '4242')
        assert order.created_at == created_at
        item = order.items.get()
        assert (item.product, item.quantity, item.unit_price_minor) == (product, 2, 1250)

    def test_already_merged_payment_is_not_duplicated(self, client, user, guest_order):
        Order.objects.create(user=user, total_minor=2500, status=Order.Status.COMPLETED, payment_id='pay_guest')

        client.force_login(user)

        assert Order.objects.filter(user=user).count() == 1
        assert not GuestOrder.objects.exists()

    def test_unverified_email_does_not_merge(self, client, make_user, guest_order):
        client.force_login(make_user('reader', verified=False))
        assert GuestOrder.objects.filter(pk=guest_order.pk).exists()
        assert not Order.objects.exists()

    def test_sign_up_waits_for_verification_then_sign_in_merges(self, client, guest_order):
        password = 'a-Long-passw0rd!'
        response = client.post('/users/register/', {
            'username': 'reader', 'email': 'READER@example.com',
            'password1': password, 'password2': password,
        })
        assert response.status_code == 201
        assert response.json()['user']['email'] == 'reader@example.com'
        assert GuestOrder.objects.exists()
        assert not Order.objects.exists()

        get_user_model().objects.filter(username='reader').update(email_verified=True)
        client.logout()
        assert client.post('/users/login/', {'username': 'reader', 'password': password}).status_code == 200

        assert Order.objects.get().user.username == 'reader'
        assert not GuestOrder.objects.exists()

    def test_other_emails_are_left_alone(self, client, other_user, guest_order):
        client.force_login(other_user)
        assert GuestOrder.objects.filter(pk=guest_order.pk).exists()
        assert not Order.objects.exists()

    def test_my_orders(self, client, user, guest_order):
        client.force_login(user)
        orders = client.get('/orders/').json()['orders']
        assert len(orders) == 1
        assert orders[0]['items'][0]['quantity'] == 2


def test_backfill_receipts_command(user):
    order = Order.objects.create(user=user, total_minor=1250, status=Order.Status.COMPLETED, payment_id='pay_b')
    with mock.patch('payments.services.find_payment', return_value=payment_object('pay_b', amount='12.50')):
        call_command('backfill_receipts')
    order.refresh_from_db()
    assert order.card_last4 == '4242'
    assert order.paid_at is not None
    assert order.transaction_id == '603668680243'
