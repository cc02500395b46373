from django.http import HttpResponse, HttpResponseForbidden, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from core.http import read_json
from payments.exceptions import PaymentGatewayError
from .forms import VoucherCheckoutForm
from .models import Voucher
from .pdf import build_voucher_pdf
from .services import VoucherError, find_by_session, start_voucher_checkout


def _first_error(form) -> str:
    for errors in form.errors.values():
        return errors[0]
    return "Invalid request"


@require_POST
def voucher_checkout(request):
    try:
        body = read_json(request)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)

    form = VoucherCheckoutForm(body, user=request.user)
    if not form.is_valid():
        return JsonResponse({"error": _first_error(form)}, status=400)

    data = form.cleaned_data
    try:
        session = start_voucher_checkout(
            amount_minor=data["amount"],
            delivery=data["delivery"],
            buyer_email=data["buyer_email"],
            recipient_email=data["recipient_email"],
            to_name=data["to_name"],
            from_name=data["from_name"],
            message=data["message"],
            send_date=data["send_date"],
        )
    except VoucherError as e:
        return JsonResponse({"error": str(e)}, status=400)
    except PaymentGatewayError:
        return JsonResponse({"error": "Failed to start checkout"}, status=502)
    return JsonResponse({"url": session.confirmation_url, "session_id": session.payment_id})


@require_GET
def voucher_by_session(request):
    """Polled by the success page until the webhook has issued the voucher."""
    sid = (request.GET.get('sid') or '').strip()
    if not sid:
        return JsonResponse({"error": "sid is required"}, status=400)

    voucher = find_by_session(sid)
    if voucher is None:
        return JsonResponse({"found": False})
    return JsonResponse({
        "found": True,
        "code": voucher.code,
        "amount_remaining": voucher.amount_remaining_minor,
        "currency": voucher.currency,
        "expires_at": voucher.expires_at.isoformat(),
    })


def _can_download(request, voucher: Voucher) -> bool:
    sid = request.GET.get('sid')
    if sid and voucher.payment_id and sid == voucher.payment_id:
        return True
    user = request.user
    if not user.is_authenticated:
        return False
    return user.is_staff or user.is_superuser or user.email.lower() == voucher.buyer_email.lower()


@require_GET
def voucher_pdf(request, code: str):
    voucher = get_object_or_404(Voucher, code=code.upper())
    if not _can_download(request, voucher):
        return HttpResponseForbidden("You cannot download this voucher.")

    response = HttpResponse(build_voucher_pdf(voucher), content_type="application/pdf")
    response["Content-Disposition"] = f'attachment; filename="voucher-{voucher.code}.pdf"'
    return response
