"""Request ID middleware and access logging."""

import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.logging import get_logger, request_id_var

logger = get_logger("app.access")

REQUEST_ID_HEADER = "X-Request-ID"

# Upstream IDs (CDN, load balancer) are echoed only when they look like IDs.
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{8,128}$")


def get_request_id(request: Request) -> str:
    """Request ID assigned by RequestIDMiddleware, or "unknown" outside it."""
    return getattr(request.state, "request_id", "unknown")


def resolve_request_id(incoming: str | None) -> str:
    """Reuse a well-formed upstream ID, otherwise mint a new one."""
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with an ID and write one access log line per request.

    The ID is stored on ``request.state``, bound to the logging context so
    every log line emitted while handling the request carries it, and echoed
    in the response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        fields = {
            "method": request.method,
            "path": request.url.path,
            "query": str(request.query_params) or None,
            "client": request.client.host if request.client else None,
        }
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    **fields,
                    "status_code": 500,
                    "latency_ms": int((time.perf_counter() - start_time) * 1000),
                    "error": str(e),
                },
                exc_info=True,
            )
            raise
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "Request completed",
            extra={
                **fields,
                "request_id": request_id,
                "status_code": response.status_code,
                "latency_ms": int((time.perf_counter() - start_time) * 1000),
                "cache_control": response.headers.get("Cache-Control"),
            },
        )
        return response
