"""FastAPI dependencies for rate limiting auth endpoints."""

from fastapi import Request

from app.core.config import settings
from app.core.rate_limit import check_rate_limit_and_raise
from app.core.security_logging import get_client_ip


def require_rate_limit_login_ip(request: Request) -> None:
    """Rate limit login attempts per client IP."""
    check_rate_limit_and_raise(
        f"login:ip:{get_client_ip(request)}",
        settings.RL_LOGIN_IP_LIMIT,
        settings.RL_LOGIN_IP_WINDOW,
        request,
        event_type="rate_limited_login_ip",
    )


def require_rate_limit_signup_ip(request: Request) -> None:
    """Rate limit signups per client IP."""
    check_rate_limit_and_raise(
        f"signup:ip:{get_client_ip(request)}",
        settings.RL_SIGNUP_IP_LIMIT,
        settings.RL_SIGNUP_IP_WINDOW,
        request,
        event_type="rate_limited_signup_ip",
    )


def require_rate_limit_refresh(user_id: str, request: Request) -> None:
    """Rate limit refresh token rotation per user; called once the user is known."""
    check_rate_limit_and_raise(
        f"refresh:user:{user_id}",
        settings.RL_REFRESH_USER_LIMIT,
        settings.RL_REFRESH_USER_WINDOW,
        request,
        event_type="rate_limited_refresh",
    )
