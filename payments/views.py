import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from . import services
from .exceptions import MalformedNotification, PaymentGatewayError, SignatureError
from .gateway import SIGNATURE_HEADER, already_recorded, handle_notification

logger = logging.getLogger('payments')


@csrf_exempt
@require_POST
def yk_webhook(request):
    """
    Gateway webhook. Answers 400 only for a bad signature or an unreadable
    body; every other delivery is acknowledged so the sender stops retrying.
    """
    try:
        outcome = handle_notification(request.body, request.headers.get(SIGNATURE_HEADER, ''))
    except SignatureError as e:
        logger.warning("Webhook rejected: %s (from %s)", e, request.META.get('REMOTE_ADDR'))
        return JsonResponse({"error": "Invalid signature"}, status=400)
    except MalformedNotification as e:
        logger.warning("Webhook malformed: %s", e)
        return JsonResponse({"error": str(e)}, status=400)

    logger.debug("Webhook handled: %s", outcome)
    return JsonResponse({"received": True})


@require_GET
def payment_return(request):
    """
    Where the gateway sends the buyer back. With ?sid= it reports the payment
    status and whether the purchase has been recorded yet.
    """
    kind = request.GET.get('kind', '')
    sid = (request.GET.get('sid') or '').strip()
    if not sid:
        return JsonResponse({"kind": kind})

    try:
        status = services.find_payment(sid).get('status') or ''
    except PaymentGatewayError:
        return JsonResponse({"error": "Payment status is unavailable"}, status=502)
    return JsonResponse({"kind": kind, "session_id": sid, "status": status, "recorded": already_recorded(sid)})
