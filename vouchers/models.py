from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class Voucher(models.Model):
    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        REDEEMED = 'redeemed', 'Redeemed'
        VOID = 'void', 'Void'

    class Delivery(models.TextChoices):
        EMAIL_NOW = 'email_now', 'Email now'
        SCHEDULE = 'schedule', 'Email on a date'
        PRINT = 'print', 'Print at home'

    code = models.CharField('Code', max_length=32, unique=True)
    amount_initial_minor = models.PositiveIntegerField('Initial value')
    amount_remaining_minor = models.PositiveIntegerField('Remaining value')
    currency = models.CharField(max_length=3, default='GBP')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE, db_index=True)

    buyer_email = models.EmailField('Buyer email')
    recipient_email = models.EmailField('Recipient email', blank=True)
    to_name = models.CharField('To', max_length=100, blank=True)
    from_name = models.CharField('From', max_length=100, blank=True)
    personal_message = models.TextField('Message', blank=True)

    delivery = models.CharField(max_length=10, choices=Delivery.choices, default=Delivery.EMAIL_NOW)
    send_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    # one voucher per checkout session
    payment_id = models.CharField(max_length=100, unique=True, null=True, blank=True)
    transaction_id = models.CharField(max_length=100, blank=True)

    expires_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_remaining_minor__gte=0) & Q(amount_remaining_minor__lte=F('amount_initial_minor')),
                name='voucher_remaining_within_initial',
            ),
        ]

    def __str__(self):
        return self.code

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= timezone.now()

    @property
    def is_gift(self) -> bool:
        return bool(self.recipient_email) and self.recipient_email.lower() != self.buyer_email.lower()

    @property
    def delivery_email(self) -> str:
        return self.recipient_email or self.buyer_email


class VoucherRedemption(models.Model):
    voucher = models.ForeignKey(Voucher, on_delete=models.PROTECT, related_name='redemptions')
    amount_minor = models.PositiveIntegerField()
    redeemed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+',
    )
    note = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.voucher.code}: -{self.amount_minor}'
