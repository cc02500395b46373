from django.conf import settings
from django.db import models


class LoyaltyMember(models.Model):
    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        SUSPENDED = 'suspended', 'Suspended'

    class Tier(models.TextChoices):
        STARTER = 'starter', 'Starter'

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='loyalty')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE)
    tier = models.CharField(max_length=12, choices=Tier.choices, default=Tier.STARTER)
    marketing_consent = models.BooleanField(default=False)
    terms_version = models.CharField(max_length=20)
    joined_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f'{self.user} ({self.get_tier_display()})'


class LoyaltyLedgerEntry(models.Model):
    """Append-only: the balance is the sum of points."""

    class Type(models.TextChoices):
        JOIN_BONUS = 'join_bonus', 'Join bonus'
        PURCHASE_EARN = 'purchase_earn', 'Purchase'
        MANUAL_ADJUST = 'manual_adjust', 'Manual adjustment'
        REDEEM = 'redeem', 'Redemption'

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='loyalty_entries')
    points = models.IntegerField()
    type = models.CharField(max_length=16, choices=Type.choices)
    source = models.CharField(max_length=64, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name_plural = 'Loyalty ledger entries'

    def __str__(self):
        return f'{self.user}: {self.points:+d} ({self.type})'
