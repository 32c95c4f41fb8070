"""Pagination constants and the listing response envelope."""

import math
from typing import Any

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 12
MAX_LIMIT = 200
# Keeps (page - 1) * limit far below the int64 skip MongoDB accepts.
MAX_PAGE = 100_000


def total_pages(total: int, limit: int) -> int:
    """Number of pages needed to show `total` items, `limit` per page."""
    if limit <= 0:
        return 0
    return math.ceil(total / limit)


def paginated_envelope(results: list[Any], total: int, page: int, limit: int) -> dict[str, Any]:
    """Build the listing envelope: {success, results, total, page, limit, totalPages}."""
    return {
        "success": True,
        "results": results,
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": total_pages(total, limit),
    }
