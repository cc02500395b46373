import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template import TemplateDoesNotExist
from django.template.loader import render_to_string

logger = logging.getLogger('mail')


def send_templated_email(*, subject: str, template: str, context: dict, to, attachments=()) -> bool:
    """
    Renders ``<template>.txt`` (and ``<template>.html`` when present) and sends it.
    Errors are logged and not raised: a failed notification must not undo
    the state change that triggered it.
    """
    recipients = [addr for addr in ([to] if isinstance(to, str) else to) if addr]
    if not recipients:
        logger.warning("Email '%s' skipped: no recipient", subject)
        return False

    ctx = {'site_name': settings.SITE_NAME, 'site_url': settings.SITE_URL, **context}
    try:
        text = render_to_string(f'{template}.txt', ctx)
        try:
            html = render_to_string(f'{template}.html', ctx)
        except TemplateDoesNotExist:
            html = None

        msg = EmailMultiAlternatives(
            subject=subject,
            body=text,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=recipients,
        )
        if html:
            msg.attach_alternative(html, 'text/html')
        for filename, content, mimetype in attachments:
            msg.attach(filename, content, mimetype)

        sent_count = msg.send(fail_silently=False)  # we want the exception
        logger.info("Email sent: '%s' to=%s result=%s", subject, recipients, sent_count)
        return bool(sent_count)
    except Exception as e:
        logger.exception("Email FAILED: '%s' to=%s: %s", subject, recipients, e)
        return False


def format_money(amount_minor: int, currency: str) -> str:
    symbol = {'GBP': '£', 'EUR': '€', 'USD': '$'}.get((currency or '').upper())
    value = f'{amount_minor / 100:.2f}'
    return f'{symbol}{value}' if symbol else f'{currency.upper()} {value}'
