from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from core.http import api_login_required, read_json
from payments.exceptions import PaymentGatewayError
from users.guest import guest_token_for, remember_guest_token
from .models import Order
from .services import OrderError, resolve_cart_lines, start_store_checkout


@require_POST
def checkout(request):
    """
    Starts a store checkout for {"items": [{"product_id", "quantity"}], "email"}.
    Anonymous buyers check out as guests identified by the guest cookie.
    """
    try:
        body = read_json(request)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)

    guest_token = ''
    try:
        lines = resolve_cart_lines(body.get('items'))
        if request.user.is_authenticated:
            session = start_store_checkout(lines, user=request.user)
        else:
            guest_token = guest_token_for(request)
            session = start_store_checkout(
                lines, guest_token=guest_token, email=(body.get('email') or '').strip().lower(),
            )
    except OrderError as e:
        return JsonResponse({"error": str(e)}, status=400)
    except PaymentGatewayError:
        return JsonResponse({"error": "Payment provider is unavailable"}, status=502)

    response = JsonResponse({"url": session.confirmation_url, "session_id": session.payment_id})
    if guest_token:
        remember_guest_token(response, guest_token)
    return response


@require_GET
@api_login_required
def my_orders(request):
    orders = Order.objects.filter(user=request.user).prefetch_related('items')
    return JsonResponse({"orders": [
        {
            "id": o.pk,
            "status": o.status,
            "total": o.total_minor,
            "currency": o.currency,
            "created_at": o.created_at.isoformat(),
            "paid_at": o.paid_at.isoformat() if o.paid_at else None,
            "card_brand": o.card_brand,
            "card_last4": o.card_last4,
            "receipt_url": o.receipt_url,
            "items": [
                {
                    "product_id": i.product_id,
                    "event_id": i.event_id,
                    "description": i.description,
                    "quantity": i.quantity,
                    "unit_price": i.unit_price_minor,
                }
                for i in o.items.all()
            ],
        }
        for o in orders
    ]})
