from django.contrib.auth import login
from django.contrib.auth.forms import AuthenticationForm
from django.http import JsonResponse
from django.views.decorators.http import require_POST

from .forms import UserRegisterForm


def _user_payload(user):
    return {
        "id": user.pk,
        "username": user.username,
        "email": user.email,
        "email_verified": user.email_verified,
    }


@require_POST
def register(request):
    """Registers a new user and signs them in (which also merges guest orders)."""
    form = UserRegisterForm(request.POST)
    if not form.is_valid():
        return JsonResponse({"errors": form.errors.get_json_data()}, status=400)
    user = form.save()
    login(request, user)
    return JsonResponse({"user": _user_payload(user)}, status=201)


@require_POST
def sign_in(request):
    form = AuthenticationForm(request, data=request.POST)
    if not form.is_valid():
        return JsonResponse({"error": "Invalid credentials"}, status=400)
    user = form.get_user()
    login(request, user)
    return JsonResponse({"user": _user_payload(user)})
