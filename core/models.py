from django.conf import settings
from django.db import models


class IdempotencyRecord(models.Model):
    """Response previously returned for a client-supplied key within one operation scope."""
    key = models.CharField(max_length=255)
    scope = models.CharField(max_length=64, db_index=True)  # e.g. loyalty.optin, bookings.cancel
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
        null=True, blank=True, related_name='idempotency_records',
    )
    status_code = models.PositiveSmallIntegerField(default=200)
    response_body = models.TextField()  # exact bytes sent the first time
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['key', 'scope'], name='uniq_idempotency_key_scope'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.scope}:{self.key} -> {self.status_code}'
