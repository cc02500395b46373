import logging

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from core.http import api_login_required
from core.idempotency import idempotent
from payments.exceptions import PaymentGatewayError
from .models import Event, EventBooking
from .services import (
    BookingError, PaymentReferenceError, SoldOut, cancel_booking, live_holds, remaining_seats,
    request_cancellation, start_event_checkout,
)

logger = logging.getLogger('bookings')


def _booking_payload(booking: EventBooking) -> dict:
    return {
        "id": str(booking.pk),
        "event_id": booking.event_id,
        "state": booking.state,
        "paid": booking.paid,
        "cancelled": booking.cancelled,
        "refunded": booking.refunded,
        "cancellation_requested": booking.cancellation_requested,
    }


def _can_manage_booking(user, booking: EventBooking) -> bool:
    return booking.user_id == user.id or user.is_staff or user.is_superuser


@require_POST
@api_login_required
def event_checkout(request, pk: int):
    event = get_object_or_404(Event, pk=pk)
    try:
        session = start_event_checkout(request.user, event)
    except SoldOut as e:
        return JsonResponse({"error": str(e)}, status=409)
    except BookingError as e:
        return JsonResponse({"error": str(e)}, status=400)
    except PaymentGatewayError:
        return JsonResponse({"error": "Failed to start checkout"}, status=502)
    return JsonResponse({"url": session.confirmation_url, "session_id": session.payment_id})


@require_GET
def event_availability(request, pk: int):
    event = get_object_or_404(Event, pk=pk, is_published=True)
    remaining = remaining_seats(event)
    held = live_holds(event).count()
    return JsonResponse({
        "event_id": event.pk,
        "capacity": event.capacity,
        "remaining": remaining,
        "held": held,
        "available_for_checkout": max(remaining - held, 0),
    })


@require_GET
@api_login_required
def my_bookings(request):
    bookings = EventBooking.objects.filter(user=request.user).select_related('event')
    return JsonResponse({"bookings": [_booking_payload(b) for b in bookings]})


@require_POST
@api_login_required
@idempotent('bookings.cancel')
def booking_cancel(request, booking_id):
    booking = get_object_or_404(EventBooking, pk=booking_id)
    if not _can_manage_booking(request.user, booking):
        return JsonResponse({"error": "Not your booking"}, status=403)

    try:
        outcome = cancel_booking(booking)
    except PaymentReferenceError:
        logger.exception("Cancel failed: booking=%s payment=%s", booking.pk, booking.payment_id)
        return JsonResponse({"error": "Payment reference could not be located"}, status=500)
    except PaymentGatewayError:
        logger.exception("Refund failed: booking=%s payment=%s", booking.pk, booking.payment_id)
        return JsonResponse({"error": "Refund failed, please try again later"}, status=502)

    booking.refresh_from_db()
    return JsonResponse({"outcome": outcome.value, "booking": _booking_payload(booking)})


@require_POST
@api_login_required
@idempotent('bookings.request_cancellation')
def booking_request_cancellation(request, booking_id):
    booking = get_object_or_404(EventBooking, pk=booking_id, user=request.user)
    try:
        booking = request_cancellation(booking)
    except BookingError as e:
        return JsonResponse({"error": str(e)}, status=409)
    return JsonResponse({"booking": _booking_payload(booking)})
