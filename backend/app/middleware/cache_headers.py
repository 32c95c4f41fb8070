"""Cache headers for CDN-fronted catalog responses.

Public catalog reads (listing, search, detail) opt in to edge caching by
setting their own Cache-Control; every other response is marked no-store.
"""

import os
from collections.abc import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response


def edge_cache_control(seconds: int) -> str:
    """Shared-cache directive: fresh for `seconds`, then served stale for half as long."""
    return f"s-maxage={seconds}, stale-while-revalidate={seconds // 2}"


class CacheHeadersMiddleware(BaseHTTPMiddleware):
    """
    Default every response to no-store unless the endpoint chose a policy.

    Error responses are never cached, whatever the endpoint set.
    Also adds X-App-Version from GIT_SHA or BUILD_ID when set.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        if response.status_code >= 400 or "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store"

        git_sha = os.getenv("GIT_SHA") or os.getenv("BUILD_ID")
        if git_sha:
            response.headers["X-App-Version"] = git_sha[:8]

        return response
