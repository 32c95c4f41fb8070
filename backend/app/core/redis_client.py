"""Redis client used for rate limiting."""

import redis
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis | None:
    """
    Get the Redis client singleton.

    Returns None when Redis is disabled, unconfigured or unreachable, unless
    REDIS_REQUIRED is set, in which case the failure is raised.
    """
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is not None:
        return _redis_client

    if not settings.REDIS_URL:
        if settings.REDIS_REQUIRED:
            raise ValueError("REDIS_URL must be set when REDIS_REQUIRED=true")
        logger.warning("Redis enabled but REDIS_URL not set; rate limiting is disabled")
        return None

    client = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=1,
        socket_timeout=1,
        retry_on_timeout=True,
        health_check_interval=30,
    )
    try:
        client.ping()
    except RedisError as e:
        if settings.REDIS_REQUIRED:
            raise
        logger.warning(f"Redis connection failed (non-fatal): {e}")
        return None

    logger.info("Redis connection established")
    _redis_client = client
    return _redis_client


def is_redis_available() -> bool:
    """Ping Redis; False when disabled or unreachable."""
    try:
        client = get_redis_client()
        return client is not None and bool(client.ping())
    except (RedisError, ValueError):
        return False


def init_redis() -> None:
    """Connect on startup so a required Redis fails the boot, not the first request."""
    if settings.REDIS_ENABLED:
        get_redis_client()
