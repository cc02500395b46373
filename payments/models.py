from django.db import models


class PaymentTransaction(models.Model):
    """Log of gateway notifications and what was done with each one."""

    class Outcome(models.TextChoices):
        PROCESSED = 'processed', 'Processed'
        DUPLICATE = 'duplicate', 'Duplicate'
        IGNORED = 'ignored', 'Ignored'
        UNCLASSIFIED = 'unclassified', 'Unclassified'
        FAILED = 'failed', 'Failed'

    provider = models.CharField(max_length=20, default='yookassa', db_index=True)
    payment_id = models.CharField(max_length=100, db_index=True)
    event = models.CharField(max_length=64, blank=True)      # notification type
    status = models.CharField(max_length=32, blank=True)     # pending/succeeded/canceled/...
    kind = models.CharField(max_length=16, blank=True)       # voucher/event/store once classified
    outcome = models.CharField(max_length=16, choices=Outcome.choices, db_index=True)
    error = models.TextField(blank=True)
    amount_minor = models.IntegerField(default=0)
    currency = models.CharField(max_length=3, blank=True)
    payload = models.JSONField(default=dict, blank=True)
    deliveries = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['payment_id', 'event'], name='uniq_payment_notification'),
        ]

    def __str__(self):
        return f'{self.provider}:{self.payment_id} {self.event} -> {self.outcome}'

    @property
    def needs_attention(self) -> bool:
        return self.outcome in (self.Outcome.FAILED, self.Outcome.UNCLASSIFIED)
