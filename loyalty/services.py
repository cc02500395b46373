import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Sum

from .models import LoyaltyLedgerEntry, LoyaltyMember

logger = logging.getLogger('loyalty')


class LoyaltyError(Exception):
    pass


class EmailNotVerified(LoyaltyError):
    pass


def balance(user) -> int:
    return LoyaltyLedgerEntry.objects.filter(user=user).aggregate(total=Sum('points'))['total'] or 0


def opt_in(user, *, terms_version: str = '', marketing_consent: bool = False, source: str = 'web'):
    """
    Joins (or re-joins) the loyalty programme. The join bonus is credited on
    the first join only. Returns (payload, joined_now).
    """
    if not user.email_verified:
        raise EmailNotVerified("Please verify your email before joining the loyalty programme.")

    terms_version = terms_version or settings.LOYALTY_TERMS_VERSION
    with transaction.atomic():
        LoyaltyMember.objects.get_or_create(user=user, defaults={'terms_version': terms_version})
        # row lock: concurrent opt-ins for one user credit the bonus once
        member = LoyaltyMember.objects.select_for_update().get(user=user)
        member.status = LoyaltyMember.Status.ACTIVE
        member.terms_version = terms_version
        member.marketing_consent = bool(marketing_consent)
        member.save(update_fields=['status', 'terms_version', 'marketing_consent', 'updated_at'])

        joined_now = not LoyaltyLedgerEntry.objects.filter(
            user=user, type=LoyaltyLedgerEntry.Type.JOIN_BONUS,
        ).exists()
        bonus = 0
        if joined_now:
            bonus = settings.LOYALTY_JOIN_BONUS
            LoyaltyLedgerEntry.objects.create(
                user=user,
                points=bonus,
                type=LoyaltyLedgerEntry.Type.JOIN_BONUS,
                source=source,
                metadata={'reason': 'welcome'},
            )

    if joined_now:
        logger.info("Loyalty join: user=%s bonus=%s terms=%s", user.pk, bonus, terms_version)

    payload = {
        "ok": True,
        "message": "You've joined the loyalty programme!" if joined_now else "Your loyalty preferences are updated.",
        "member": {
            "user_id": user.pk,
            "tier": member.tier,
            "join_bonus": bonus,
            "marketing_consent": member.marketing_consent,
            "terms_version": member.terms_version,
        },
        "balance": balance(user),
    }
    return payload, joined_now


def status(user) -> dict:
    member = LoyaltyMember.objects.filter(user=user).first()
    if member is None:
        return {"member": False, "balance": 0}
    return {
        "member": member.status == LoyaltyMember.Status.ACTIVE,
        "status": member.status,
        "tier": member.tier,
        "marketing_consent": member.marketing_consent,
        "terms_version": member.terms_version,
        "joined_at": member.joined_at.isoformat(),
        "balance": balance(user),
    }
