from datetime import timedelta
from unittest import mock

import pytest
from django.core import mail
from django.utils import timezone

from events.models import EventBooking, SeatHold
from events.services import (
    CancellationOutcome, PaymentReferenceError, SoldOut, cancel_booking, confirm_paid_booking,
    remaining_seats, request_cancellation, start_event_checkout,
)
from payments.classifier import EventPurchase
from payments.exceptions import PaymentGatewayError
from payments.notifications import from_payment_object
from payments.services import CheckoutSession, RefundResult
from tests.conftest import payment_object

pytestmark = pytest.mark.django_db

SUCCEEDED_PAYMENT = {'id': 'pay_booking_1', 'status': 'succeeded', 'amount': {'value': '10.00', 'currency': 'GBP'}}


@pytest.fixture
def gateway():
    """find_payment / refund_payment / create_payment replaced for the duration of a test."""
    with mock.patch('payments.services.find_payment', return_value=SUCCEEDED_PAYMENT) as find, \
            mock.patch('payments.services.refund_payment') as refund, \
            mock.patch('payments.services.create_payment') as create:
        refund.return_value = RefundResult(refund_id='rf_1', status='succeeded', created_at=timezone.now())
        create.side_effect = lambda **kw: CheckoutSession(
            payment_id=f"pay_{kw['metadata']['booking_id'][:8]}", confirmation_url='https://pay.example/confirm',
        )
        yield mock.Mock(find=find, refund=refund, create=create)


def _flags(booking):
    booking.refresh_from_db()
    return booking.paid, booking.cancelled, booking.refunded


class TestCancel:
    def test_inside_window_is_too_late_and_changes_nothing(self, make_event, make_booking, user, gateway):
        booking = make_booking(make_event(hours_ahead=24), user)
        assert cancel_booking(booking) == CancellationOutcome.TOO_LATE
        assert _flags(booking) == (True, False, False)
        gateway.find.assert_not_called()
        gateway.refund.assert_not_called()

    def test_window_boundary_uses_now(self, event, make_booking, user, gateway):
        booking = make_booking(event, user)
        later = event.starts_at - timedelta(hours=47, minutes=59)
        assert cancel_booking(booking, now=later) == CancellationOutcome.TOO_LATE
        assert _flags(booking) == (True, False, False)

    def test_paid_booking_is_refunded(self, event, make_booking, user, gateway, django_capture_on_commit_callbacks):
        booking = make_booking(event, user)

        with django_capture_on_commit_callbacks(execute=True):
            outcome = cancel_booking(booking)

        assert outcome == CancellationOutcome.REFUNDED
        booking.refresh_from_db()
        assert booking.cancelled and booking.refunded
        assert booking.refund_id == 'rf_1'
        assert booking.refund_processed_at is not None
        gateway.refund.assert_called_once_with(
            'pay_booking_1', amount_minor=1000, currency='GBP', idempotence_key=f'refund-{booking.pk}',
        )
        assert len(mail.outbox) == 1
        assert 'refund of £10.00' in mail.outbox[0].body

    def test_second_cancel_does_not_touch_the_gateway(self, event, make_booking, user, gateway):
        booking = make_booking(event, user)
        assert cancel_booking(booking) == CancellationOutcome.REFUNDED
        assert cancel_booking(booking) == CancellationOutcome.REFUNDED
        assert gateway.refund.call_count == 1
        assert gateway.find.call_count == 1

    def test_unpaid_booking_is_cancelled_without_refund(self, event, make_booking, user, gateway,
                                                       django_capture_on_commit_callbacks):
        booking = make_booking(event, user, paid=False, payment_id=None)
        with django_capture_on_commit_callbacks(execute=True):
            assert cancel_booking(booking) == CancellationOutcome.CANCELLED_NO_REFUND
        assert _flags(booking) == (False, True, False)
        gateway.refund.assert_not_called()
        assert 'nothing to refund' in mail.outbox[0].body

    def test_paid_without_payment_reference_fails_without_mutation(self, event, make_booking, user, gateway):
        booking = make_booking(event, user, payment_id=None)
        with pytest.raises(PaymentReferenceError):
            cancel_booking(booking)
        assert _flags(booking) == (True, False, False)

    def test_payment_not_found_at_gateway(self, event, make_booking, user, gateway):
        gateway.find.side_effect = PaymentGatewayError("not found")
        booking = make_booking(event, user)
        with pytest.raises(PaymentReferenceError):
            cancel_booking(booking)
        assert _flags(booking) == (True, False, False)
        gateway.refund.assert_not_called()

    def test_refund_failure_leaves_booking_untouched(self, event, make_booking, user, gateway):
        gateway.refund.side_effect = PaymentGatewayError("declined")
        booking = make_booking(event, user)
        with pytest.raises(PaymentGatewayError):
            cancel_booking(booking)
        assert _flags(booking) == (True, False, False)

    def test_cancel_clears_request_flag(self, event, make_booking, user, gateway):
        booking = make_booking(event, user, cancellation_requested=True)
        cancel_booking(booking)
        booking.refresh_from_db()
        assert not booking.cancellation_requested
        assert booking.state == EventBooking.State.REFUNDED


class TestCancelEndpoint:
    def test_owner_cancels_with_idempotency_key(self, client, event, make_booking, user, gateway):
        booking = make_booking(event, user)
        client.force_login(user)
        url = f'/events/bookings/{booking.pk}/cancel/'

        first = client.post(url, HTTP_IDEMPOTENCY_KEY='cancel-1')
        second = client.post(url, HTTP_IDEMPOTENCY_KEY='cancel-1')

        assert first.status_code == second.status_code == 200
        assert first.content == second.content
        assert first.json()['outcome'] == 'refunded'
        assert gateway.refund.call_count == 1

    def test_too_late_is_a_normal_response(self, client, make_event, make_booking, user, gateway):
        booking = make_booking(make_event(hours_ahead=5), user)
        client.force_login(user)
        response = client.post(f'/events/bookings/{booking.pk}/cancel/')
        assert response.status_code == 200
        assert response.json()['outcome'] == 'too_late'

    def test_other_users_cannot_cancel(self, client, event, make_booking, user, other_user, gateway):
        booking = make_booking(event, user)
        client.force_login(other_user)
        assert client.post(f'/events/bookings/{booking.pk}/cancel/').status_code == 403
        assert _flags(booking) == (True, False, False)

    def test_missing_payment_reference_is_a_server_error(self, client, event, make_booking, user, gateway):
        booking = make_booking(event, user, payment_id=None)
        client.force_login(user)
        assert client.post(f'/events/bookings/{booking.pk}/cancel/').status_code == 500

    def test_anonymous_gets_401(self, client, event, make_booking, user):
        booking = make_booking(event, user)
        assert client.post(f'/events/bookings/{booking.pk}/cancel/').status_code == 401


def test_request_cancellation_notifies_staff(event, make_booking, user, django_capture_on_commit_callbacks):
    booking = make_booking(event, user)
    with django_capture_on_commit_callbacks(execute=True):
        request_cancellation(booking)
        request_cancellation(booking)

    booking.refresh_from_db()
    assert booking.cancellation_requested
    assert booking.paid and not booking.cancelled
    assert booking.state == EventBooking.State.CANCELLATION_REQUESTED
    assert [m.to for m in mail.outbox] == [['bookings@example.com']]


class TestCapacity:
    def test_remaining_seats_counts_active_bookings_only(self, make_event, make_booking, make_user):
        event = make_event(capacity=3)
        make_booking(event, make_user('a'), payment_id='p1')
        make_booking(event, make_user('b'), payment_id='p2')
        make_booking(event, make_user('c'), payment_id='p3', cancelled=True)
        assert remaining_seats(event) == 1
        assert event.remaining_seats == 1

    def test_availability_endpoint(self, client, make_event, make_booking, user):
        event = make_event(capacity=4)
        make_booking(event, user)
        data = client.get(f'/events/{event.pk}/availability/').json()
        assert data['capacity'] == 4
        assert data['remaining'] == 3
        assert data['available_for_checkout'] == 3

    def test_seat_hold_blocks_second_checkout(self, make_event, user, other_user, gateway):
        event = make_event(capacity=1)
        session = start_event_checkout(user, event)
        assert session.confirmation_url == 'https://pay.example/confirm'

        with pytest.raises(SoldOut):
            start_event_checkout(other_user, event)
        # display stays capacity minus bookings, holds are not bookings
        assert remaining_seats(event) == 1

    def test_retried_checkout_replaces_own_hold(self, make_event, user, gateway):
        event = make_event(capacity=1)
        start_event_checkout(user, event)
        start_event_checkout(user, event)
        assert SeatHold.objects.filter(event=event).count() == 1

    def test_expired_hold_frees_the_seat(self, make_event, user, other_user, gateway):
        event = make_event(capacity=1)
        start_event_checkout(user, event)
        SeatHold.objects.update(expires_at=timezone.now() - timedelta(minutes=1))
        start_event_checkout(other_user, event)
        assert SeatHold.objects.filter(user=other_user).exists()

    def test_payment_converts_hold_into_booking(self, make_event, user, gateway):
        event = make_event(capacity=1)
        start_event_checkout(user, event)
        metadata = gateway.create.call_args.kwargs['metadata']
        assert metadata['kind'] == 'event'

        hold = SeatHold.objects.get()
        purchase = EventPurchase(event_id=event.pk, booking_id=hold.booking_id, user_id=user.pk,
                                 email=user.email)
        notification = from_payment_object(payment_object(hold.payment_id, amount='10.00'))
        booking, created = confirm_paid_booking(purchase, notification)

        assert created
        assert booking.pk == hold.booking_id
        hold.refresh_from_db()
        assert hold.converted_at is not None
        assert remaining_seats(event) == 0

    def test_checkout_gateway_failure_releases_hold(self, make_event, user, gateway):
        gateway.create.side_effect = PaymentGatewayError("down")
        with pytest.raises(PaymentGatewayError):
            start_event_checkout(user, make_event(capacity=1))
        assert not SeatHold.objects.exists()
