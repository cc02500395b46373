"""
Idempotent mutations keyed by a client-supplied token.

The first request with a given (key, scope) runs the mutation and, when it
succeeds, stores the exact response alongside the key in the same
transaction. Every later request with that pair gets the stored response
back and the mutation is not executed again.
"""
import logging
from datetime import timedelta
from functools import wraps

from django.conf import settings
from django.db import IntegrityError, transaction
from django.http import HttpResponse, JsonResponse
from django.utils import timezone

from .models import IdempotencyRecord

logger = logging.getLogger('core')

HEADER = 'Idempotency-Key'
MAX_KEY_LENGTH = 255


class IdempotencyConflict(Exception):
    """The key was already used in this scope by another user."""


def expiry_cutoff():
    ttl = settings.IDEMPOTENCY_KEY_TTL_DAYS
    if not ttl:
        return None
    return timezone.now() - timedelta(days=ttl)


def _lookup(key: str, scope: str):
    record = IdempotencyRecord.objects.filter(key=key, scope=scope).first()
    if record is None:
        return None
    cutoff = expiry_cutoff()
    if cutoff is not None and record.created_at < cutoff:
        # outside the retention window the key is free again
        record.delete()
        return None
    return record


def _replay(record: IdempotencyRecord, user_id):
    if record.user_id is not None and record.user_id != user_id:
        raise IdempotencyConflict(record.key)
    return record.status_code, record.response_body, True


def run_idempotent(key: str, scope: str, user, mutation):
    """
    Runs ``mutation`` at most once per (key, scope).

    ``mutation()`` returns ``(status_code, body)`` where body is the text
    sent to the client. Returns ``(status_code, body, replayed)``.
    Only successful (2xx) responses are recorded: a rejected precondition
    or a server error leaves the key free for a retry.
    """
    user_id = getattr(user, 'pk', None)
    try:
        with transaction.atomic():
            record = _lookup(key, scope)
            if record is not None:
                return _replay(record, user_id)

            status_code, body = mutation()
            if not 200 <= status_code < 300:
                return status_code, body, False

            IdempotencyRecord.objects.create(
                key=key, scope=scope, user_id=user_id,
                status_code=status_code, response_body=body,
            )
    except IntegrityError:
        # lost the race against a concurrent request with the same key;
        # our mutation was rolled back together with the insert
        record = IdempotencyRecord.objects.filter(key=key, scope=scope).first()
        if record is None:
            raise
        logger.info("Idempotency replay after concurrent insert: scope=%s key=%s", scope, key)
        return _replay(record, user_id)
    return status_code, body, False


def idempotent(scope: str):
    """
    View decorator: honours the ``Idempotency-Key`` header for ``scope``.
    Requests without the header run the view normally.
    """
    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            key = (request.headers.get(HEADER) or '').strip()
            if not key:
                return view(request, *args, **kwargs)
            if len(key) > MAX_KEY_LENGTH:
                return JsonResponse({"error": "Idempotency-Key is too long"}, status=400)

            def mutation():
                response = view(request, *args, **kwargs)
                return response.status_code, response.content.decode(response.charset)

            try:
                status_code, body, replayed = run_idempotent(key, scope, request.user, mutation)
            except IdempotencyConflict:
                return JsonResponse({"error": "Idempotency-Key already used"}, status=422)

            if replayed:
                logger.info("Idempotent replay: scope=%s key=%s", scope, key)
            return HttpResponse(body, status=status_code, content_type='application/json')
        return wrapper
    return decorator


def purge_expired() -> int:
    cutoff = expiry_cutoff()
    if cutoff is None:
        return 0
    deleted, _ = IdempotencyRecord.objects.filter(created_at__lt=cutoff).delete()
    return deleted
