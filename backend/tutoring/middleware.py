import logging
import time
from typing import Callable

from django.conf import settings
from django.http import HttpRequest, HttpResponse

logger = logging.getLogger('django.request')


def _describe_user(request: HttpRequest) -> str:
    user = getattr(request, 'user', None)
    if user is None or not getattr(user, 'is_authenticated', False):
        return 'anonymous'
    return f"{user.username}({getattr(user, 'role', '-')})"


def _route(request: HttpRequest) -> str:
    match = getattr(request, 'resolver_match', None)
    if match is not None and match.view_name:
        return match.view_name
    return request.path


def _refusal(response) -> tuple:
    data = getattr(response, 'data', None)
    if not isinstance(data, dict):
        return '-', '-'
    return data.get('kind', '-'), data.get('detail_reason') or data.get('reason', '-')


class SlowRequestLoggingMiddleware:
    """Request log for the scheduling API.

    Requests slower than ``SLOW_REQUEST_LOG_MS`` are logged as warnings;
    reschedules and bookings hold row locks, so these are usually lock
    waits. Every 409 is logged with the refusal's kind and reason so that
    conflicts and policy refusals can be counted per route.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]):
        self.get_response = get_response

    def __call__(self, request: HttpRequest):
        started = time.perf_counter()
        response = self.get_response(request)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        status_code = getattr(response, 'status_code', None)

        if status_code == 409:
            kind, reason = _refusal(response)
            logger.info(
                'REQUEST_REFUSED route=%s kind=%s reason=%s user=%s',
                _route(request),
                kind,
                reason,
                _describe_user(request),
            )

        if not getattr(settings, 'SLOW_REQUEST_LOG_ENABLED', True):
            return response
        if elapsed_ms >= int(getattr(settings, 'SLOW_REQUEST_LOG_MS', 1200)):
            logger.warning(
                'SLOW_REQUEST method=%s route=%s status=%s duration_ms=%.2f user=%s',
                request.method,
                _route(request),
                status_code if status_code is not None else 'NA',
                elapsed_ms,
                _describe_user(request),
            )
        return response
