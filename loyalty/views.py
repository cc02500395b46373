from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from core.http import api_login_required, read_json
from core.idempotency import idempotent
from .services import EmailNotVerified, opt_in, status


@require_POST
@api_login_required
@idempotent('loyalty.optin')
def loyalty_optin(request):
    try:
        body = read_json(request)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)

    try:
        payload, joined_now = opt_in(
            request.user,
            terms_version=str(body.get('terms_version') or ''),
            marketing_consent=bool(body.get('marketing_consent')),
        )
    except EmailNotVerified as e:
        return JsonResponse({"error": str(e)}, status=403)
    return JsonResponse(payload, status=201 if joined_now else 200)


@require_GET
@api_login_required
def loyalty_status(request):
    return JsonResponse(status(request.user))
