import json
from functools import wraps

from django.http import JsonResponse


def api_login_required(view):
    # JSON endpoints answer 401 instead of redirecting to the login page
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"error": "AUTH_REQUIRED"}, status=401)
        return view(request, *args, **kwargs)
    return wrapper


def read_json(request) -> dict:
    """Parses a JSON object body. Raises ValueError on anything else."""
    try:
        body = json.loads(request.body.decode('utf-8') or '{}')
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError("Invalid JSON") from e
    if not isinstance(body, dict):
        raise ValueError("Invalid JSON payload")
    return body
