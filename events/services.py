import logging
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import models, transaction
from django.utils import timezone

from core.mail import format_money, send_templated_email
from orders.models import Order, OrderItem
from payments import services as gateway
from payments.classifier import KIND_EVENT, EventPurchase
from payments.exceptions import PaymentGatewayError
from payments.notifications import PaymentNotification
from .models import Event, EventBooking, SeatHold

logger = logging.getLogger('bookings')


class BookingError(Exception):
    pass


class SoldOut(BookingError):
    pass


class PaymentReferenceError(BookingError):
    """A paid booking whose payment cannot be located at the gateway."""


class CancellationOutcome(models.TextChoices):
    TOO_LATE = 'too_late', 'Too late to cancel'
    REFUNDED = 'refunded', 'Cancelled and refunded'
    CANCELLED_NO_REFUND = 'cancelled_no_refund', 'Cancelled without refund'


# --- capacity ---
def remaining_seats(event: Event) -> int:
    """capacity minus bookings that are not cancelled."""
    return event.capacity - EventBooking.objects.filter(event=event, cancelled=False).count()


def live_holds(event: Event, now=None):
    now = now or timezone.now()
    return SeatHold.objects.filter(event=event, converted_at__isnull=True, expires_at__gt=now)


def seats_available_for_checkout(event: Event, now=None) -> int:
    return remaining_seats(event) - live_holds(event, now).count()


def release_expired_holds(now=None) -> int:
    now = now or timezone.now()
    deleted, _ = SeatHold.objects.filter(converted_at__isnull=True, expires_at__lte=now).delete()
    if deleted:
        logger.info("Released %s expired seat hold(s)", deleted)
    return deleted


# --- checkout ---
def _reserve_seat(user, event: Event) -> SeatHold:
    now = timezone.now()
    with transaction.atomic():
        # the event row lock serialises concurrent checkouts for the same event
        event = Event.objects.select_for_update().get(pk=event.pk)
        # a retried checkout replaces the user's previous hold instead of taking a second seat
        live_holds(event, now).filter(user=user).delete()
        if seats_available_for_checkout(event, now) <= 0:
            raise SoldOut(f"No seats left for “{event.title}”.")
        return SeatHold.objects.create(
            event=event,
            user=user,
            expires_at=now + timedelta(minutes=settings.SEAT_HOLD_TTL_MINUTES),
        )


def start_event_checkout(user, event: Event) -> gateway.CheckoutSession:
    """
    Holds a seat and starts the gateway payment. The booking id is allocated
    here and travels in the payment metadata so the webhook can create the
    booking under exactly this id.
    """
    if not event.is_published or event.is_past:
        raise BookingError("This event is not open for booking.")

    hold = _reserve_seat(user, event)
    try:
        session = gateway.create_payment(
            amount_minor=event.price_minor,
            currency=event.currency,
            description=f"{settings.SITE_NAME}: {event.title}",
            metadata={
                'kind': KIND_EVENT,
                'event_id': event.pk,
                'booking_id': str(hold.booking_id),
                'user_id': user.pk,
                'email': user.email,
                'name': user.get_full_name() or user.username,
            },
            customer_email=user.email,
            return_url=gateway.return_url_for(KIND_EVENT),
        )
    except PaymentGatewayError:
        hold.delete()
        raise

    SeatHold.objects.filter(pk=hold.pk).update(payment_id=session.payment_id)
    logger.info("Event checkout started: event=%s booking=%s payment=%s",
                event.pk, hold.booking_id, session.payment_id)
    return session


# --- Paid (entry) ---
def confirm_paid_booking(purchase: EventPurchase, notification: PaymentNotification):
    """
    Creates the paid booking under the pre-allocated id together with a
    completed order for receipting. Returns (booking, created).
    """
    if not get_user_model().objects.filter(pk=purchase.user_id).exists():
        raise BookingError(f"User {purchase.user_id} does not exist")

    with transaction.atomic():
        try:
            event = Event.objects.select_for_update().get(pk=purchase.event_id)
        except Event.DoesNotExist:
            raise BookingError(f"Event {purchase.event_id} does not exist")

        booking, created = EventBooking.objects.get_or_create(
            pk=purchase.booking_id,
            defaults={
                'event': event,
                'user_id': purchase.user_id,
                'name': purchase.name,
                'email': purchase.email,
                'paid': True,
                'payment_id': notification.session_id,
                'transaction_id': notification.transaction_id,
            },
        )
        if not created:
            return booking, False

        # the order keeps the list price at this moment, decoupled from later price edits
        order = Order.objects.create(
            user_id=purchase.user_id,
            total_minor=event.price_minor,
            currency=event.currency,
            status=Order.Status.COMPLETED,
            payment_id=notification.session_id,
            transaction_id=notification.transaction_id,
            receipt_url=notification.receipt_url,
            card_brand=notification.card_brand,
            card_last4=notification.card_last4,
            paid_at=notification.paid_at,
        )
        OrderItem.objects.create(
            order=order,
            event=event,
            description=event.title,
            quantity=1,
            unit_price_minor=event.price_minor,
        )

        SeatHold.objects.filter(booking_id=purchase.booking_id, converted_at__isnull=True).update(
            converted_at=timezone.now(), payment_id=notification.session_id,
        )

        left = remaining_seats(event)
        if left < 0:
            # payment is already taken, so the booking stands; staff resolve it
            logger.warning("Event %s is over capacity by %s after booking %s (payment=%s)",
                           event.pk, -left, booking.pk, notification.session_id)

        transaction.on_commit(lambda: send_booking_confirmation(booking.pk))

    logger.info("Booking confirmed: booking=%s event=%s order=%s payment=%s",
                booking.pk, event.pk, order.pk, notification.session_id)
    return booking, True


# --- Cancel ---
def _outcome_of_terminal(booking: EventBooking) -> CancellationOutcome:
    return CancellationOutcome.REFUNDED if booking.refunded else CancellationOutcome.CANCELLED_NO_REFUND


def _refund(booking: EventBooking) -> gateway.RefundResult:
    if not booking.payment_id:
        raise PaymentReferenceError(f"Booking {booking.pk} is paid but has no payment reference")
    try:
        payment = gateway.find_payment(booking.payment_id)
    except PaymentGatewayError as e:
        raise PaymentReferenceError(f"Booking {booking.pk}: {e}") from e
    if payment.get('status') != 'succeeded':
        raise PaymentReferenceError(
            f"Booking {booking.pk}: payment {booking.payment_id} is {payment.get('status')!r}"
        )

    amount = payment.get('amount') or {}
    return gateway.refund_payment(
        booking.payment_id,
        amount_minor=gateway.from_gateway_amount(amount.get('value')),
        currency=amount.get('currency') or booking.event.currency,
        # same key on retry: the gateway returns the refund it already made
        idempotence_key=f'refund-{booking.pk}',
    )


def cancel_booking(booking: EventBooking, now=None) -> CancellationOutcome:
    """
    Cancels a booking, refunding it when it was paid.

    Inside the cancellation window nothing changes and TOO_LATE is returned.
    A booking that is already cancelled returns its outcome without touching
    the gateway. Refund failures propagate and leave the booking as it was.
    """
    now = now or timezone.now()
    with transaction.atomic():
        booking = EventBooking.objects.select_for_update().select_related('event').get(pk=booking.pk)

        if booking.cancelled:
            return _outcome_of_terminal(booking)

        if booking.event.starts_at - now < timedelta(hours=settings.CANCELLATION_WINDOW_HOURS):
            return CancellationOutcome.TOO_LATE

        update_fields = ['cancelled', 'cancellation_requested', 'refunded']
        if booking.paid:
            refund = _refund(booking)
            booking.refunded = True
            booking.refund_id = refund.refund_id
            booking.refund_processed_at = refund.created_at
            update_fields += ['refund_id', 'refund_processed_at']
            outcome = CancellationOutcome.REFUNDED
        else:
            booking.refunded = False
            outcome = CancellationOutcome.CANCELLED_NO_REFUND

        booking.cancelled = True
        booking.cancellation_requested = False
        booking.save(update_fields=update_fields)

        if booking.email:
            transaction.on_commit(lambda: send_cancellation_email(booking.pk, outcome))

    logger.info("Booking cancelled: booking=%s outcome=%s refund=%s",
                booking.pk, outcome, booking.refund_id or '-')
    return outcome


def request_cancellation(booking: EventBooking) -> EventBooking:
    with transaction.atomic():
        booking = EventBooking.objects.select_for_update().select_related('event').get(pk=booking.pk)
        if booking.cancelled:
            raise BookingError("Booking is already cancelled.")
        if not booking.cancellation_requested:
            booking.cancellation_requested = True
            booking.save(update_fields=['cancellation_requested'])
            transaction.on_commit(lambda: send_cancellation_request_email(booking.pk))
            logger.info("Cancellation requested: booking=%s", booking.pk)
    return booking


# --- emails ---
def _booking_context(booking: EventBooking) -> dict:
    return {
        'booking': booking,
        'event': booking.event,
        'name': booking.name or booking.user.display_name,
        'price': format_money(booking.event.price_minor, booking.event.currency),
        'cancellation_window_hours': settings.CANCELLATION_WINDOW_HOURS,
    }


def send_booking_confirmation(booking_id) -> None:
    booking = EventBooking.objects.select_related('event', 'user').filter(pk=booking_id).first()
    if booking is None:
        logger.error("send_booking_confirmation: booking %s does not exist", booking_id)
        return
    send_templated_email(
        subject=f"{settings.SITE_NAME}: your place at {booking.event.title}",
        template='email/booking_confirmed',
        context=_booking_context(booking),
        to=booking.email or booking.user.email,
    )


def send_cancellation_email(booking_id, outcome: str) -> None:
    booking = EventBooking.objects.select_related('event', 'user').filter(pk=booking_id).first()
    if booking is None:
        logger.error("send_cancellation_email: booking %s does not exist", booking_id)
        return
    send_templated_email(
        subject=f"{settings.SITE_NAME}: booking cancelled ({booking.event.title})",
        template='email/booking_cancelled',
        context={**_booking_context(booking), 'refunded': outcome == CancellationOutcome.REFUNDED},
        to=booking.email,
    )


def send_cancellation_request_email(booking_id) -> None:
    booking = EventBooking.objects.select_related('event', 'user').filter(pk=booking_id).first()
    if booking is None:
        logger.error("send_cancellation_request_email: booking %s does not exist", booking_id)
        return
    send_templated_email(
        subject=f"Cancellation request: {booking.event.title}",
        template='email/booking_cancellation_requested',
        context=_booking_context(booking),
        to=settings.BOOKINGS_ADMIN_EMAIL,
    )
