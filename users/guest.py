import uuid

GUEST_COOKIE = 'guest_session'
GUEST_COOKIE_MAX_AGE = 60 * 60 * 24 * 7


def guest_token_for(request) -> str:
    """Anonymous client token from the cookie, or a fresh one the caller should set."""
    return request.COOKIES.get(GUEST_COOKIE) or uuid.uuid4().hex


def remember_guest_token(response, token: str):
    response.set_cookie(
        GUEST_COOKIE, token,
        max_age=GUEST_COOKIE_MAX_AGE, httponly=True, samesite='Strict',
    )
    return response
