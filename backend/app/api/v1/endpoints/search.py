"""Full-text PDF search endpoint."""

from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from pymongo.collection import Collection

from app.core.config import settings
from app.db.mongo import get_pdf_collection
from app.middleware.cache_headers import edge_cache_control
from app.search.pdf_search_service import search_pdfs

router = APIRouter(tags=["Search"])


@router.get(
    "/search",
    summary="Search PDFs",
    description=(
        "Relevance-ranked search over titles, keywords, tags and category. "
        "Supports q, language, category, locations, page, limit and sort "
        "(score|downloads|latest)."
    ),
)
async def search(
    request: Request,
    response: Response,
    collection: Collection = Depends(get_pdf_collection),
) -> dict[str, Any]:
    result = search_pdfs(collection, request.query_params)
    response.headers["Cache-Control"] = edge_cache_control(settings.SEARCH_CACHE_SECONDS)
    return result
