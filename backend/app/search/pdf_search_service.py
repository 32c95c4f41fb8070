"""Search service for the PDF catalog: Atlas Search pipeline or indexed find()."""

import logging
import time
from typing import Any

from bson import ObjectId
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from app.common.pagination import paginated_envelope
from app.core.config import settings
from app.search.filters import PdfQuery, build_pdf_filters_and_options
from app.search.pipeline import build_pdf_search_pipeline, read_facet_result

logger = logging.getLogger(__name__)

ENGINE_ATLAS_SEARCH = "atlas_search"
ENGINE_FIND = "find"

# Fields returned by filter-only listings.
LISTING_PROJECTION = {
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
    "pages": 1,
    "fileSize": 1,
    "metaTitle": 1,
    "metaDescription": 1,
}

# Fields returned by the single-document endpoint.
DETAIL_PROJECTION = {
    **LISTING_PROJECTION,
    "description": 1,
    "keywords": 1,
    "locations": 1,
    "level": 1,
    "publishedAt": 1,
    "examDate": 1,
    "mimeType": 1,
    "isFeatured": 1,
    "views": 1,
    "updatedAt": 1,
}


def serialize_pdf(document: dict[str, Any]) -> dict[str, Any]:
    """Make a catalog document JSON-friendly (ObjectIds become strings)."""
    serialized = {}
    for key, value in document.items():
        if isinstance(value, ObjectId):
            value = str(value)
        serialized[key] = value
    return serialized


def _run_pipeline(collection: Collection, pq: PdfQuery, sort: Any) -> tuple[list[dict[str, Any]], int]:
    params = pq.params
    pipeline = build_pdf_search_pipeline(
        q=params["q"],
        language=params["language"],
        category=params["category"],
        locations=params["locations"],
        sort=sort,
        page=pq.options.page,
        limit=pq.options.limit,
        index=settings.ATLAS_SEARCH_INDEX,
    )
    aggregated = list(collection.aggregate(pipeline))
    return read_facet_result(aggregated)


def _count(collection: Collection, filters: dict[str, Any]) -> int:
    if filters:
        return collection.count_documents(filters)
    try:
        return collection.estimated_document_count()
    except PyMongoError as e:
        logger.warning(f"estimated_document_count failed, counting documents: {e}")
        return collection.count_documents({})


def _run_find(collection: Collection, pq: PdfQuery) -> tuple[list[dict[str, Any]], int]:
    options = pq.options
    cursor = (
        collection.find(pq.filters, LISTING_PROJECTION)
        .sort(options.sort_fields)
        .skip(options.skip)
        .limit(options.limit)
    )
    results = list(cursor)
    return results, _count(collection, pq.filters)


def _execute(collection: Collection, pq: PdfQuery, use_pipeline: bool) -> dict[str, Any]:
    engine = ENGINE_ATLAS_SEARCH if use_pipeline else ENGINE_FIND
    start_time = time.perf_counter()
    try:
        if use_pipeline:
            results, total = _run_pipeline(collection, pq, pq.params["sort"])
        else:
            results, total = _run_find(collection, pq)
    except PyMongoError as e:
        logger.error(
            "PDF search failed",
            extra={
                "engine": engine,
                "q": pq.meta["q"],
                "filters": list(pq.filters),
                "error": str(e),
            },
        )
        raise

    latency_ms = int((time.perf_counter() - start_time) * 1000)
    logger.info(
        "PDF search executed",
        extra={
            "engine": engine,
            "q": pq.meta["q"],
            "sort": pq.meta["sort"],
            "page": pq.options.page,
            "total": total,
            "latency_ms": latency_ms,
        },
    )

    return paginated_envelope(
        [serialize_pdf(doc) for doc in results],
        total=total,
        page=pq.options.page,
        limit=pq.options.limit,
    )


def list_pdfs(collection: Collection, query: Any = None) -> dict[str, Any]:
    """
    List PDFs for the catalog endpoint.

    A non-empty `q` goes through the Atlas Search pipeline (relevance ranked,
    language/category/locations only); otherwise every supported filter is
    applied with an indexed find().

    Args:
        collection: PDF collection
        query: URL query params or a plain mapping

    Returns:
        {success, results, total, page, limit, totalPages}
    """
    pq = build_pdf_filters_and_options(query)
    return _execute(collection, pq, use_pipeline=bool(pq.params["q"]))


def search_pdfs(collection: Collection, query: Any = None) -> dict[str, Any]:
    """Full-text search; always uses the Atlas Search pipeline."""
    pq = build_pdf_filters_and_options(query)
    return _execute(collection, pq, use_pipeline=True)
