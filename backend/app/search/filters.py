"""Parse catalog query parameters into safe MongoDB filters and list options.

- ``build_mongo_filters``: filter document for indexed, filter-only queries
- ``build_list_options``: page / limit / skip / sort
- ``build_pdf_filters_and_options``: convenience wrapper returning both plus
  the request metadata echoed back in the response envelope

Every parser here is total: garbled input degrades to a default, it never
raises. Full-text ``q`` queries do not go through ``build_mongo_filters``;
they use ``app.search.pipeline.build_pdf_search_pipeline`` instead.
"""

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, NamedTuple

from app.common.pagination import DEFAULT_LIMIT, DEFAULT_PAGE, MAX_LIMIT, MAX_PAGE
from app.search.params import SearchParams

DEFAULT_SORT = "score"

# Sort names exposed to clients and the field order each one maps to.
SORT_MAP: dict[str, dict[str, int]] = {
    "score": {"score": -1, "downloads": -1, "createdAt": -1},
    "downloads": {"downloads": -1, "createdAt": -1},
    "latest": {"createdAt": -1},
    "oldest": {"createdAt": 1},
    "price_asc": {"price": 1},
    "price_desc": {"price": -1},
}

# Text fields matched by the plain ``keywords`` fallback.
KEYWORD_FIELDS = ("title_en", "title_hi", "title_bn", "description")

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_REGEX_META = re.compile(r"[.*+?^${}()|\[\]\\]")
# Digit runs longer than 18 are rejected so page/limit stay within int64.
_INTEGER_PREFIX = re.compile(r"^\s*([+-]?\d{1,18})(?!\d)")
_RELATIVE_DATE = re.compile(r"^last(\d{1,6})([dhmy])$", re.IGNORECASE)
_NUMERIC = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

# m and y are fixed 30 and 365 day spans, not calendar months/years.
_RELATIVE_UNITS = {
    "d": timedelta(days=1),
    "h": timedelta(hours=1),
    "m": timedelta(days=30),
    "y": timedelta(days=365),
}

_TRUE_VALUES = {"1", "true", "yes"}
_FALSE_VALUES = {"0", "false", "no"}


def sanitize_string(value: Any) -> Any:
    """Strip ASCII control characters and surrounding whitespace.

    Non-string values are returned unchanged.
    """
    if not isinstance(value, str):
        return value
    return _CONTROL_CHARS.sub("", value).strip()


def parse_integer(value: Any, fallback: int | None = None) -> int | None:
    """Parse a leading decimal integer ("12abc" -> 12), else `fallback`."""
    if value is None or value == "" or isinstance(value, bool):
        return fallback
    match = _INTEGER_PREFIX.match(str(value))
    if not match:
        return fallback
    return int(match.group(1))


def parse_boolean(value: Any, fallback: bool | None = None) -> bool | None:
    """Parse 1/0, true/false, yes/no (case-insensitive), else `fallback`."""
    if value is None or value == "":
        return fallback
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return fallback


def parse_list(value: Any) -> list[Any]:
    """Split a comma-separated string (or sanitize a list) into non-empty tokens.

    Order is kept and duplicates are not collapsed.
    """
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        items = [_list_item(item) for item in value]
    else:
        items = str(value).split(",")
    return [token for token in (sanitize_string(item) for item in items) if token]


def _list_item(item: Any) -> str | None:
    # Only scalar tokens survive; nested documents could smuggle operators.
    if isinstance(item, str):
        return item
    if isinstance(item, (int, float)) and not isinstance(item, bool):
        return str(item)
    return None


def parse_date(value: Any, now: datetime | None = None) -> datetime | None:
    """Parse a date parameter into an aware UTC datetime.

    Accepted forms:
    - relative durations: ``last7d``, ``last12h``, ``last6m``, ``last1y``
    - millisecond timestamps (numeric strings of 10+ characters)
    - ISO-8601 dates/datetimes; values without an offset are taken as UTC

    Returns None when the value cannot be resolved to a valid instant.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)

    text = str(value).strip()
    if not text:
        return None

    relative = _RELATIVE_DATE.match(text)
    if relative:
        amount = int(relative.group(1))
        unit = _RELATIVE_UNITS[relative.group(2).lower()]
        reference = now or datetime.now(UTC)
        try:
            return reference - amount * unit
        except (OverflowError, ValueError):
            return None

    if _NUMERIC.match(text) and len(text) >= 10:
        try:
            return datetime.fromtimestamp(float(text) / 1000.0, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def escape_regex(text: str) -> str:
    """Escape every regex metacharacter so `text` matches literally."""
    return _REGEX_META.sub(r"\\\g<0>", text)


def keyword_pattern(keywords: str) -> re.Pattern[str]:
    """Case-insensitive literal substring pattern for a keyword string."""
    return re.compile(escape_regex(keywords), re.IGNORECASE)


def _scalar(value: Any) -> str | None:
    """Sanitized string value, or None for anything that is not a string."""
    if not isinstance(value, str):
        return None
    return sanitize_string(value) or None


def _date_range(start: Any, end: Any) -> dict[str, datetime] | None:
    lower = parse_date(start)
    upper = parse_date(end)
    bounds: dict[str, datetime] = {}
    if lower:
        bounds["$gte"] = lower
    if upper:
        bounds["$lte"] = upper
    return bounds or None


def build_mongo_filters(opts: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build a MongoDB filter document for PDFs.

    Supported options:
    - language, category, level: exact match
    - tags, locations: match any (list or comma-separated string)
    - isPaid: boolean equality
    - minDownloads: lower bound on downloads
    - dateFrom / dateTo: inclusive range on publishedAt
    - examDateFrom / examDateTo: inclusive range on examDate
    - keywords: literal, case-insensitive match on titles/description, or an
      exact tag

    Unknown options are ignored; no options yields ``{}``.
    """
    opts = opts or {}
    filters: dict[str, Any] = {}

    for name in ("language", "category"):
        value = _scalar(opts.get(name))
        if value:
            filters[name] = value

    for name in ("tags", "locations"):
        value = opts.get(name)
        if isinstance(value, str) and not value.strip():
            continue
        items = parse_list(value)
        if items:
            filters[name] = {"$in": items}

    is_paid = parse_boolean(opts.get("isPaid"))
    if is_paid is not None:
        filters["isPaid"] = is_paid

    min_downloads = parse_integer(opts.get("minDownloads"))
    if min_downloads is not None:
        filters["downloads"] = {"$gte": min_downloads}

    published = _date_range(opts.get("dateFrom"), opts.get("dateTo"))
    if published:
        filters["publishedAt"] = published

    exam = _date_range(opts.get("examDateFrom"), opts.get("examDateTo"))
    if exam:
        filters["examDate"] = exam

    level = _scalar(opts.get("level"))
    if level:
        filters["level"] = level

    keywords = opts.get("keywords")
    if isinstance(keywords, str):
        kw = sanitize_string(keywords)
        if kw:
            pattern = keyword_pattern(kw)
            filters["$or"] = [{name: pattern} for name in KEYWORD_FIELDS] + [
                {"tags": {"$in": [kw]}}
            ]

    return filters


@dataclass(frozen=True)
class ListOptions:
    """Resolved pagination and sort for a listing query."""

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    skip: int = 0
    sort_name: str = DEFAULT_SORT
    sort: dict[str, int] = field(default_factory=lambda: dict(SORT_MAP[DEFAULT_SORT]))

    @property
    def sort_fields(self) -> list[tuple[str, int]]:
        """Sort as (field, direction) pairs, the form pymongo cursors take."""
        return list(self.sort.items())


def resolve_sort_name(sort: Any) -> str:
    """Map a client sort name onto SORT_MAP, defaulting to relevance."""
    if isinstance(sort, str) and sort in SORT_MAP:
        return sort
    return DEFAULT_SORT


def build_list_options(page: Any = None, limit: Any = None, sort: Any = None) -> ListOptions:
    """Clamp page/limit and resolve the sort name.

    page < 1 or non-numeric -> 1; limit <= 0 or non-numeric -> 12;
    limit > 200 -> 200; page > MAX_PAGE -> MAX_PAGE.
    """
    page_number = parse_integer(page, DEFAULT_PAGE)
    page_size = parse_integer(limit, DEFAULT_LIMIT)
    if page_size <= 0:
        page_size = DEFAULT_LIMIT
    if page_size > MAX_LIMIT:
        page_size = MAX_LIMIT
    if page_number <= 0:
        page_number = DEFAULT_PAGE
    if page_number > MAX_PAGE:
        page_number = MAX_PAGE

    sort_name = resolve_sort_name(sort)
    return ListOptions(
        page=page_number,
        limit=page_size,
        skip=(page_number - 1) * page_size,
        sort_name=sort_name,
        sort=dict(SORT_MAP[sort_name]),
    )


class PdfQuery(NamedTuple):
    """Output of build_pdf_filters_and_options."""

    filters: dict[str, Any]
    options: ListOptions
    meta: dict[str, Any]
    params: dict[str, Any]


_SCALAR_PARAMS = (
    "language",
    "category",
    "minDownloads",
    "dateFrom",
    "dateTo",
    "examDateFrom",
    "examDateTo",
    "level",
    "keywords",
    "page",
    "limit",
    "sort",
)


def normalize_params(query: Any = None) -> dict[str, Any]:
    """Read every supported parameter from URL query params or a plain mapping."""
    source = SearchParams.wrap(query)

    q = sanitize_string(source.get("q"))
    params: dict[str, Any] = {"q": q if isinstance(q, str) else ""}
    for name in _SCALAR_PARAMS:
        params[name] = source.get(name)

    params["isPaid"] = parse_boolean(source.get("isPaid")) if source.has("isPaid") else None

    for name in ("tags", "locations"):
        value = source.get(name)
        if isinstance(value, str) and value.strip():
            value = parse_list(value)
        params[name] = value

    return params


def build_pdf_filters_and_options(query: Any = None) -> PdfQuery:
    """Build filters, list options and response metadata in one call.

    Accepts Starlette ``QueryParams``, any object with ``get``/``has``, or a
    plain dict.
    """
    params = normalize_params(query)
    filters = build_mongo_filters(params)
    options = build_list_options(params["page"], params["limit"], params["sort"])

    meta = {
        "q": params["q"],
        "page": options.page,
        "limit": options.limit,
        "sort": options.sort_name,
    }
    return PdfQuery(filters=filters, options=options, meta=meta, params=params)
