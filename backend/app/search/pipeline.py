"""Atlas Search aggregation pipeline builder for PDFs."""

from typing import Any

from app.common.pagination import MAX_LIMIT, MAX_PAGE
from app.search.filters import parse_integer, sanitize_string

DEFAULT_INDEX = "pdf_search_index"
DEFAULT_PIPELINE_LIMIT = 10

# Fields matched by the full-text clause.
SEARCH_PATHS = [
    "title_en",
    "title_hi",
    "title_bn",
    "keywords.en",
    "keywords.hi",
    "keywords.bn",
    "tags",
    "category",
]

HIGHLIGHT_PATHS = ["title_en", "title_hi", "title_bn", "keywords.en", "tags"]

# Tolerate typos, but require the first two characters to match.
FUZZY_OPTIONS = {"maxEdits": 2, "prefixLength": 2}

# Listing essentials only: descriptions and audit fields stay out of results.
SEARCH_PROJECTION = {
    "title_en": 1,
    "title_hi": 1,
    "title_bn": 1,
    "category": 1,
    "tags": 1,
    "language": 1,
    "seoSlug": 1,
    "downloads": 1,
    "createdAt": 1,
    "r2Key": 1,
    "price": 1,
    "isPaid": 1,
    "score": 1,
    "highlights": 1,
}

RELEVANCE_SORT = {"score": -1, "downloads": -1, "createdAt": -1}
PIPELINE_SORTS = {
    "downloads": {"downloads": -1, "createdAt": -1},
    "latest": {"createdAt": -1},
}


def resolve_pipeline_sort(sort: Any) -> dict[str, int]:
    """Sort stage body for a sort name; anything unknown ranks by relevance."""
    if isinstance(sort, str) and sort in PIPELINE_SORTS:
        return dict(PIPELINE_SORTS[sort])
    return dict(RELEVANCE_SORT)


def _bounded_int(value: Any, default: int, ceiling: int) -> int:
    number = parse_integer(value, default)
    if number <= 0:
        return default
    return min(number, ceiling)


def _as_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    cleaned = (sanitize_string(item) for item in value if isinstance(item, str))
    return [item for item in cleaned if item]


def build_search_compound(
    q: str | None = None,
    language: str | None = None,
    category: str | None = None,
    locations: list[str] | str | None = None,
) -> dict[str, Any]:
    """
    Build the `compound` operator of the $search stage.

    The text clause goes in `must` so it both matches and scores; equality and
    set-membership clauses go in `filter`, narrowing the matches without
    touching the relevance score.
    """
    must: list[dict[str, Any]] = []
    filter_clauses: list[dict[str, Any]] = []

    term = sanitize_string(q) if isinstance(q, str) else ""
    if term:
        must.append(
            {
                "text": {
                    "query": term,
                    "path": list(SEARCH_PATHS),
                    "fuzzy": dict(FUZZY_OPTIONS),
                }
            }
        )

    for path, value in (("language", language), ("category", category)):
        value = sanitize_string(value) if isinstance(value, str) else ""
        if value:
            filter_clauses.append({"equals": {"path": path, "value": value}})

    location_values = _as_list(locations)
    if location_values:
        filter_clauses.append({"in": {"path": "locations", "value": location_values}})

    compound: dict[str, Any] = {}
    if must:
        compound["must"] = must
    if filter_clauses:
        compound["filter"] = filter_clauses
    if not compound:
        # title_en is required on every PDF, so this matches the whole catalog.
        compound["filter"] = [{"exists": {"path": "title_en"}}]
    return compound


def build_pdf_search_pipeline(
    q: str | None = None,
    language: str | None = None,
    category: str | None = None,
    locations: list[str] | str | None = None,
    sort: str | None = "score",
    page: int = 1,
    limit: int = DEFAULT_PIPELINE_LIMIT,
    index: str | None = None,
) -> list[dict[str, Any]]:
    """
    Build a MongoDB Atlas Search aggregation pipeline for PDFs.

    Args:
        q: Free-text query; the text clause is only added when non-empty
        language: Exact language filter (optional)
        category: Exact category filter (optional)
        locations: Match-any location filter (optional)
        sort: "score" (default), "downloads" or "latest"; anything else ranks
            by relevance
        page: Page number (1-based)
        limit: Results per page
        index: Atlas Search index name

    Returns:
        Aggregation pipeline whose last stage facets the page slice
        (`results`) and the total match count (`totalCount`).
    """
    page = _bounded_int(page, 1, MAX_PAGE)
    limit = _bounded_int(limit, DEFAULT_PIPELINE_LIMIT, MAX_LIMIT)

    pipeline: list[dict[str, Any]] = [
        {
            "$search": {
                "index": index or DEFAULT_INDEX,
                "compound": build_search_compound(q, language, category, locations),
                "highlight": {"path": list(HIGHLIGHT_PATHS)},
            }
        },
        {
            "$addFields": {
                "score": {"$meta": "searchScore"},
                "highlights": {"$meta": "searchHighlights"},
            }
        },
        {"$project": dict(SEARCH_PROJECTION)},
        {"$sort": resolve_pipeline_sort(sort)},
        {
            "$facet": {
                "results": [{"$skip": (page - 1) * limit}, {"$limit": limit}],
                "totalCount": [{"$count": "count"}],
            }
        },
    ]
    return pipeline


def read_facet_result(aggregated: list[dict[str, Any]]) -> tuple[list[dict[str, Any]], int]:
    """Extract (results, total) from the output of the $facet stage."""
    first = aggregated[0] if aggregated else {}
    results = first.get("results") or []
    counts = first.get("totalCount") or []
    total = counts[0].get("count", 0) if counts else 0
    return results, int(total)
