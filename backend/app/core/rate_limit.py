"""Fixed-window rate limiting backed by Redis."""

from typing import NamedTuple

from fastapi import Request, status
from redis.exceptions import RedisError

from app.core.app_exceptions import raise_app_error
from app.core.config import settings
from app.core.logging import get_logger
from app.core.redis_client import get_redis_client
from app.core.security_logging import log_security_event

logger = get_logger(__name__)

KEY_PREFIX = "pdfcat:rl"


class RateLimitResult(NamedTuple):
    allowed: bool
    remaining: int
    reset_seconds: int


def _unavailable(limit: int, window_seconds: int) -> RateLimitResult:
    # Fail open unless Redis is mandatory for this deployment.
    if settings.REDIS_REQUIRED:
        return RateLimitResult(False, 0, window_seconds)
    return RateLimitResult(True, limit, window_seconds)


def rate_limit(key: str, limit: int, window_seconds: int) -> RateLimitResult:
    """
    Count one hit against `key` in the current window.

    The first hit creates the counter with the window as its TTL, so the
    window starts at the first request rather than on a clock boundary.
    """
    redis_client = get_redis_client()
    if redis_client is None:
        return _unavailable(limit, window_seconds)

    try:
        pipe = redis_client.pipeline()
        pipe.incr(key)
        pipe.ttl(key)
        count, ttl = pipe.execute()
        if ttl is None or ttl < 0:
            redis_client.expire(key, window_seconds)
            ttl = window_seconds
    except RedisError as e:
        logger.error(f"Rate limit check failed: {e}")
        return _unavailable(limit, window_seconds)

    count = int(count)
    if count > limit:
        return RateLimitResult(False, 0, int(ttl))
    return RateLimitResult(True, limit - count, int(ttl))


def check_rate_limit_and_raise(
    key: str, limit: int, window_seconds: int, request: Request, event_type: str = "rate_limited"
) -> None:
    """Raise 429 RATE_LIMITED (with retry_after_seconds) when `key` is over its limit."""
    result = rate_limit(f"{KEY_PREFIX}:{key}", limit, window_seconds)
    if result.allowed:
        return

    log_security_event(
        request,
        event_type=event_type,
        outcome="deny",
        reason_code="RATE_LIMITED",
    )
    raise_app_error(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        code="RATE_LIMITED",
        message="Rate limit exceeded. Please try again later.",
        details={"retry_after_seconds": result.reset_seconds},
    )
