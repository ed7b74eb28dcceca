"""
Redis-based rate limiting for order API endpoints.
Implements a fixed-window counter keyed by view and caller.

The caller is the authenticated user when there is one, otherwise the client
IP. Limiting fails open: if Redis is unreachable or RATE_LIMIT_ENABLED is
False, requests pass through.
"""
import logging
from functools import wraps

import redis
from django.conf import settings
from rest_framework import status
from rest_framework.exceptions import Throttled
from rest_framework.response import Response

logger = logging.getLogger(__name__)

# Initialize Redis client
try:
    redis_client = redis.Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=5
    )
    redis_client.ping()
except (redis.ConnectionError, redis.TimeoutError) as e:
    logger.warning(f"Redis connection failed: {e}. Rate limiting will be disabled.")
    redis_client = None


def get_client_ip(request):
    """Extract client IP address from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR', 'unknown')
    return ip


def get_caller_key(request):
    """Identify the caller: user id when authenticated, else client IP."""
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return f"user:{user.pk}"
    return f"ip:{get_client_ip(request)}"


def limiting_enabled() -> bool:
    return getattr(settings, 'RATE_LIMIT_ENABLED', True) and redis_client is not None


def hit(scope: str, request, window_seconds: int):
    """
    Count one request against ``scope`` for the caller.

    Returns (current_count, ttl). Raises redis.RedisError on backend failure.
    """
    key = f"rate_limit:{scope}:{get_caller_key(request)}"
    current_count = redis_client.incr(key)
    if current_count == 1:
        redis_client.expire(key, window_seconds)
    return current_count, redis_client.ttl(key)


def too_many_requests(max_requests: int, window_seconds: int, ttl: int) -> Response:
    return Response(
        {
            'error': 'Rate limit exceeded',
            'detail': f'Maximum {max_requests} requests per {window_seconds} seconds allowed.',
            'retry_after': ttl
        },
        status=status.HTTP_429_TOO_MANY_REQUESTS,
        headers={
            'X-RateLimit-Limit': str(max_requests),
            'X-RateLimit-Remaining': '0',
            'X-RateLimit-Reset': str(ttl),
            'Retry-After': str(ttl)
        }
    )


def add_limit_headers(response, max_requests: int, current_count: int, ttl: int):
    response['X-RateLimit-Limit'] = str(max_requests)
    response['X-RateLimit-Remaining'] = str(max(0, max_requests - current_count))
    response['X-RateLimit-Reset'] = str(ttl)
    return response


def rate_limit(max_requests: int = 20, window_seconds: int = 60):
    """
    Rate limiting decorator for DRF view methods.

    Usage:
        @rate_limit(20, 60)  # 20 requests per minute
        def get(self, request):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(self, request, *args, **kwargs):
            if not limiting_enabled():
                return view_func(self, request, *args, **kwargs)

            try:
                current_count, ttl = hit(view_func.__qualname__, request, window_seconds)
            except redis.RedisError as e:
                logger.error(f"Redis error in rate limiting: {e}")
                return view_func(self, request, *args, **kwargs)

            if current_count > max_requests:
                return too_many_requests(max_requests, window_seconds, ttl)

            response = view_func(self, request, *args, **kwargs)
            return add_limit_headers(response, max_requests, current_count, ttl)

        return wrapper
    return decorator


class RateLimitMixin:
    """
    Mixin for DRF class-based views. Limits every method of the view together.

    The check runs in ``initial()`` so the caller is resolved by DRF
    authentication first; an exceeded limit raises ``Throttled`` (HTTP 429).

    Usage:
        class RecordDeliveryView(RateLimitMixin, APIView):
            rate_limit_max_requests = 30
            rate_limit_window_seconds = 60
    """
    rate_limit_max_requests = 20
    rate_limit_window_seconds = 60

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        self._rate_limit_state = None
        if not limiting_enabled():
            return

        try:
            current_count, ttl = hit(
                self.__class__.__name__, request, self.rate_limit_window_seconds
            )
        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            return

        if current_count > self.rate_limit_max_requests:
            raise Throttled(
                wait=ttl,
                detail=(
                    f'Maximum {self.rate_limit_max_requests} requests per '
                    f'{self.rate_limit_window_seconds} seconds allowed.'
                )
            )
        self._rate_limit_state = (current_count, ttl)

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        state = getattr(self, '_rate_limit_state', None)
        if state is not None:
            current_count, ttl = state
            add_limit_headers(response, self.rate_limit_max_requests, current_count, ttl)
        return response
