import logging

from django.contrib.auth.signals import user_logged_in
from django.dispatch import receiver

from orders.services import merge_guest_orders

logger = logging.getLogger('orders')


# Sign-up logs the new user in, so this covers both sign-up and sign-in.
@receiver(user_logged_in)
def on_user_logged_in(sender, request, user, **kwargs):
    try:
        merge_guest_orders(user)
    except Exception:
        # merging is best-effort, authentication must not fail because of it
        logger.exception("Guest order merge failed: user=%s email=%s", user.pk, user.email)
