# events/admin.py
from django.contrib import admin, messages

from payments.exceptions import PaymentGatewayError
from .models import Event, EventBooking, SeatHold
from .services import CancellationOutcome, PaymentReferenceError, cancel_booking, remaining_seats


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ('title', 'starts_at', 'capacity', 'seats_left', 'price_minor', 'currency', 'is_published')
    list_filter = ('is_published', 'starts_at')
    search_fields = ('title',)

    @admin.display(description='Seats left')
    def seats_left(self, obj):
        return remaining_seats(obj)


# --- actions ---
@admin.action(description="Cancel selected bookings (refund when paid)")
def cancel_bookings(modeladmin, request, queryset):
    counts = {outcome: 0 for outcome in CancellationOutcome}
    failed = 0
    for booking in queryset:
        try:
            counts[cancel_booking(booking)] += 1
        except (PaymentReferenceError, PaymentGatewayError) as e:
            failed += 1
            modeladmin.message_user(request, f"Booking {booking.pk}: {e}", level=messages.ERROR)

    modeladmin.message_user(
        request,
        f"Refunded: {counts[CancellationOutcome.REFUNDED]}, "
        f"cancelled without refund: {counts[CancellationOutcome.CANCELLED_NO_REFUND]}, "
        f"too late: {counts[CancellationOutcome.TOO_LATE]}, failed: {failed}",
    )


@admin.register(EventBooking)
class EventBookingAdmin(admin.ModelAdmin):
    list_display = ('id', 'event', 'user', 'email', 'paid', 'cancellation_requested', 'cancelled', 'refunded', 'created_at')
    list_filter = ('paid', 'cancelled', 'refunded', 'cancellation_requested', 'event')
    search_fields = ('id', 'email', 'name', 'payment_id', 'user__email')
    readonly_fields = ('payment_id', 'transaction_id', 'refund_id', 'refund_processed_at', 'created_at')
    actions = [cancel_bookings]


@admin.register(SeatHold)
class SeatHoldAdmin(admin.ModelAdmin):
    list_display = ('booking_id', 'event', 'user', 'expires_at', 'converted_at')
    list_filter = ('event',)
