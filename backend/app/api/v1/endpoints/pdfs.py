"""PDF catalog endpoints: listing, detail, admin CRUD and signed URLs."""

from typing import Any

from fastapi import APIRouter, Depends, Request, Response, status
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError
from sqlalchemy.orm import Session

from app.catalog import repository
from app.core.app_exceptions import (
    raise_app_error,
    raise_bad_request,
    raise_conflict,
    raise_forbidden,
    raise_not_found,
)
from app.core.config import settings
from app.core.dependencies import AdminUser, CurrentUser
from app.core.logging import get_logger
from app.core.security_logging import log_security_event
from app.db.mongo import get_pdf_collection
from app.db.session import get_db
from app.middleware.cache_headers import edge_cache_control
from app.models.entitlement import EntitlementKind
from app.schemas.pdf import (
    PdfCreate,
    PdfDetailResponse,
    PdfUpdate,
    SignedUrlRequest,
    SignedUrlResponse,
)
from app.search.pdf_search_service import DETAIL_PROJECTION, list_pdfs, serialize_pdf
from app.services import entitlements
from app.storage import r2

logger = get_logger(__name__)

router = APIRouter(tags=["PDFs"])

SIGNED_URL_DOWNLOAD = "download"
SIGNED_URL_UPLOAD = "upload"


def _conflict_on_slug(e: DuplicateKeyError) -> None:
    raise_conflict(
        "A PDF with this seoSlug already exists",
        details={"key": (e.details or {}).get("keyValue")},
    )


@router.get(
    "",
    summary="List PDFs",
    description=(
        "Filter-only listing over indexed fields, or relevance-ranked search when q "
        "is present. Returns {success, results, total, page, limit, totalPages}."
    ),
)
async def get_pdfs(
    request: Request,
    response: Response,
    collection: Collection = Depends(get_pdf_collection),
) -> dict[str, Any]:
    result = list_pdfs(collection, request.query_params)
    response.headers["Cache-Control"] = edge_cache_control(settings.SEARCH_CACHE_SECONDS)
    return result


@router.post(
    "/signed-url",
    response_model=SignedUrlResponse,
    summary="Presigned R2 URL",
    description=(
        "type=download returns a short-lived GET URL (paid PDFs need an entitlement); "
        "type=upload returns a PUT URL and is admin only."
    ),
)
async def create_signed_url(
    body: SignedUrlRequest,
    request: Request,
    current_user: CurrentUser,
    db: Session = Depends(get_db),
    collection: Collection = Depends(get_pdf_collection),
) -> SignedUrlResponse:
    if not body.type or not body.r2Key:
        raise_bad_request(
            "MISSING_FIELDS", "Missing required fields", details={"required": ["type", "r2Key"]}
        )

    expires_in = settings.SIGNED_URL_EXPIRE_SECONDS

    if body.type == SIGNED_URL_DOWNLOAD:
        pdf = repository.find_by_r2_key(collection, body.r2Key)
        if not pdf:
            raise_not_found("PDF not found")

        if pdf.get("isPaid") and not entitlements.has_access(
            db, current_user.id, EntitlementKind.PDF, str(pdf["_id"])
        ):
            log_security_event(
                request,
                event_type="signed_url_denied",
                outcome="deny",
                reason_code="ENTITLEMENT_REQUIRED",
                user_id=str(current_user.id),
                pdf_id=str(pdf["_id"]),
            )
            raise_forbidden("Access denied. Purchase required.")

        url = _presign(r2.get_download_signed_url, body.r2Key, expires_in)
        repository.increment_downloads(collection, pdf["_id"])
        return SignedUrlResponse(type="download", url=url, expiresIn=expires_in)

    if body.type == SIGNED_URL_UPLOAD:
        if not current_user.is_admin:
            log_security_event(
                request,
                event_type="signed_url_denied",
                outcome="deny",
                reason_code="FORBIDDEN",
                user_id=str(current_user.id),
            )
            raise_forbidden("Access denied")

        url = _presign(
            r2.get_upload_signed_url,
            body.r2Key,
            expires_in,
            content_type=body.contentType or r2.DEFAULT_CONTENT_TYPE,
        )
        return SignedUrlResponse(type="upload", url=url, expiresIn=expires_in)

    raise_bad_request(
        "INVALID_TYPE", "Invalid type", details={"allowed": [SIGNED_URL_DOWNLOAD, SIGNED_URL_UPLOAD]}
    )


def _presign(sign, r2_key: str, expires_in: int, **kwargs: Any) -> str:
    try:
        return sign(r2_key, expires_in, **kwargs)
    except r2.StorageNotConfiguredError as e:
        logger.error("Object storage is not configured", extra={"error": str(e)})
        raise_app_error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            code="STORAGE_UNAVAILABLE",
            message="File storage is not available",
        )


@router.get(
    "/{pdf_id}",
    response_model=PdfDetailResponse,
    summary="Get PDF",
    description="Look up a PDF by ObjectId or seoSlug.",
)
async def get_pdf(
    pdf_id: str,
    response: Response,
    collection: Collection = Depends(get_pdf_collection),
) -> PdfDetailResponse:
    pdf = repository.find_pdf(collection, pdf_id, DETAIL_PROJECTION)
    if not pdf:
        raise_not_found("PDF not found")

    response.headers["Cache-Control"] = edge_cache_control(settings.PDF_DETAIL_CACHE_SECONDS)
    return PdfDetailResponse(pdf=serialize_pdf(pdf))


@router.post(
    "",
    response_model=PdfDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create PDF",
    description="Add a catalog entry for an uploaded file (admin only).",
)
async def create_pdf(
    body: PdfCreate,
    admin: AdminUser,
    collection: Collection = Depends(get_pdf_collection),
) -> PdfDetailResponse:
    try:
        pdf = repository.create_pdf(collection, body.model_dump(), uploaded_by=str(admin.id))
    except DuplicateKeyError as e:
        _conflict_on_slug(e)
    return PdfDetailResponse(pdf=serialize_pdf(pdf))


@router.put(
    "/{pdf_id}",
    response_model=PdfDetailResponse,
    summary="Update PDF",
    description="Partial metadata update (admin only); omitted fields are left unchanged.",
)
async def update_pdf(
    pdf_id: str,
    body: PdfUpdate,
    admin: AdminUser,
    collection: Collection = Depends(get_pdf_collection),
) -> PdfDetailResponse:
    try:
        pdf = repository.update_pdf(collection, pdf_id, body.changes(), DETAIL_PROJECTION)
    except DuplicateKeyError as e:
        _conflict_on_slug(e)
    if not pdf:
        raise_not_found("PDF not found")

    logger.info("PDF updated", extra={"pdf_id": str(pdf["_id"]), "admin_id": str(admin.id)})
    return PdfDetailResponse(pdf=serialize_pdf(pdf))


@router.delete(
    "/{pdf_id}",
    summary="Delete PDF",
    description="Remove a catalog entry (admin only). The stored file is not touched.",
)
async def delete_pdf(
    pdf_id: str,
    admin: AdminUser,
    collection: Collection = Depends(get_pdf_collection),
) -> dict[str, Any]:
    if not repository.delete_pdf(collection, pdf_id):
        raise_not_found("PDF not found")
    return {"success": True, "message": "PDF deleted"}
