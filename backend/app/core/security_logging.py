"""Security event logging utilities."""

from typing import Any

from fastapi import Request

from app.common.request_id import get_request_id
from app.core.logging import get_logger

logger = get_logger("app.security")


def get_client_ip(request: Request) -> str:
    """Client IP, preferring the first X-Forwarded-For hop behind a proxy."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"


def log_security_event(
    request: Request,
    event_type: str,
    outcome: str,
    reason_code: str | None = None,
    user_id: str | None = None,
    **extra_fields: Any,
) -> None:
    """
    Log a security event with structured fields.

    Args:
        request: FastAPI request object
        event_type: Event type (e.g. "auth_login_success", "signed_url_denied")
        outcome: "allow", "deny" or "degraded"
        reason_code: Error code when the outcome is "deny"
        user_id: User ID if known
        **extra_fields: Additional fields to include
    """
    log_data: dict[str, Any] = {
        "event_type": event_type,
        "request_id": get_request_id(request),
        "outcome": outcome,
        "ip_address": get_client_ip(request),
        "user_agent": request.headers.get("User-Agent"),
    }
    if user_id:
        log_data["user_id"] = user_id
    if reason_code:
        log_data["reason_code"] = reason_code
    log_data.update(extra_fields)

    if outcome == "allow":
        logger.info(f"Security event: {event_type}", extra=log_data)
    else:
        logger.warning(f"Security event: {event_type}", extra=log_data)
