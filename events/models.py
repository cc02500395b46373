import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


# events
class Event(models.Model):
    title = models.CharField('Title', max_length=255)
    description = models.TextField('Description', blank=True)
    starts_at = models.DateTimeField('Starts at')
    capacity = models.PositiveIntegerField('Seats')
    price_minor = models.PositiveIntegerField('Price (minor units)')
    currency = models.CharField('Currency', max_length=3, default='GBP')
    is_published = models.BooleanField('Published', default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['starts_at']
        verbose_name = 'Event'
        verbose_name_plural = 'Events'

    def __str__(self):
        return f'{self.title} ({self.starts_at:%Y-%m-%d %H:%M})'

    @property
    def active_bookings_count(self) -> int:
        return self.bookings.filter(cancelled=False).count()

    @property
    def remaining_seats(self) -> int:
        # derived on every read, never stored
        return self.capacity - self.active_bookings_count

    @property
    def is_past(self) -> bool:
        return self.starts_at <= timezone.now()


# bookings
class EventBooking(models.Model):
    class State(models.TextChoices):
        PENDING = 'pending', 'Pending payment'
        PAID = 'paid', 'Paid'
        CANCELLATION_REQUESTED = 'cancellation_requested', 'Cancellation requested'
        CANCELLED_NO_REFUND = 'cancelled_no_refund', 'Cancelled (no refund)'
        REFUNDED = 'refunded', 'Refunded'

    # allocated at checkout and carried through the payment metadata
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name='bookings')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='bookings')

    # contact snapshot at booking time
    name = models.CharField('Name', max_length=255, blank=True)
    email = models.EmailField('Email', blank=True)

    paid = models.BooleanField(default=False)
    cancelled = models.BooleanField(default=False, db_index=True)
    cancellation_requested = models.BooleanField(default=False)
    refunded = models.BooleanField(default=False)

    payment_id = models.CharField(max_length=100, unique=True, null=True, blank=True)
    transaction_id = models.CharField(max_length=100, blank=True)
    refund_id = models.CharField(max_length=100, blank=True)
    refund_processed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Booking'
        verbose_name_plural = 'Bookings'

    def __str__(self):
        return f'Booking {self.pk} ({self.get_state_display()})'

    @property
    def state(self) -> str:
        if self.cancelled:
            return self.State.REFUNDED if self.refunded else self.State.CANCELLED_NO_REFUND
        if self.cancellation_requested:
            return self.State.CANCELLATION_REQUESTED
        return self.State.PAID if self.paid else self.State.PENDING

    def get_state_display(self) -> str:
        return self.State(self.state).label

    @property
    def is_terminal(self) -> bool:
        return self.cancelled


class SeatHold(models.Model):
    """Seat reserved for a checkout in progress; converted on payment or released on expiry."""
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='holds')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='seat_holds')
    booking_id = models.UUIDField(unique=True, default=uuid.uuid4)
    payment_id = models.CharField(max_length=100, blank=True)
    expires_at = models.DateTimeField(db_index=True)
    converted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f'Hold {self.booking_id} on event {self.event_id}'

    @property
    def is_live(self) -> bool:
        return self.converted_at is None and self.expires_at > timezone.now()
