"""PDF catalog persistence on top of a pymongo collection."""

import logging
from datetime import UTC, datetime
from typing import Any

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from app.catalog.slug import slug_source, slugify, unique_slug

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"
DEFAULT_CATEGORY = "other"
DEFAULT_MIME_TYPE = "application/pdf"
DEFAULT_LEVEL = "beginner"


def lookup_query(id_or_slug: str) -> dict[str, Any]:
    """Match by ObjectId when the value is one, otherwise by seoSlug."""
    if ObjectId.is_valid(id_or_slug):
        return {"_id": ObjectId(id_or_slug)}
    return {"seoSlug": id_or_slug}


def find_pdf(
    collection: Collection, id_or_slug: str, projection: dict[str, int] | None = None
) -> dict[str, Any] | None:
    return collection.find_one(lookup_query(id_or_slug), projection)


def find_by_r2_key(collection: Collection, r2_key: str) -> dict[str, Any] | None:
    return collection.find_one({"r2Key": r2_key}, {"_id": 1, "isPaid": 1, "price": 1, "r2Key": 1})


def _slug_exists(collection: Collection):
    def exists(candidate: str) -> bool:
        return collection.count_documents({"seoSlug": candidate}, limit=1) > 0

    return exists


def create_pdf(
    collection: Collection, data: dict[str, Any], uploaded_by: str | None = None
) -> dict[str, Any]:
    """
    Insert a catalog document.

    A supplied seoSlug is normalized; otherwise one is generated from the
    first title that produces a slug, with a random suffix on collision.
    """
    now = datetime.now(UTC)
    document: dict[str, Any] = {
        "language": DEFAULT_LANGUAGE,
        "category": DEFAULT_CATEGORY,
        "level": DEFAULT_LEVEL,
        "keywords": {"en": [], "hi": [], "bn": []},
        "tags": [],
        "locations": [],
        "mimeType": DEFAULT_MIME_TYPE,
        "publishedAt": now,
        "isPaid": False,
        "price": 0,
        "downloads": 0,
        "views": 0,
        "isFeatured": False,
        **{key: value for key, value in data.items() if value is not None},
        "createdAt": now,
        "updatedAt": now,
    }
    if uploaded_by:
        document["uploadedBy"] = uploaded_by

    supplied_slug = slugify(document.get("seoSlug"))
    if supplied_slug:
        document["seoSlug"] = supplied_slug
    else:
        base = slug_source(document.get("title_en"), document.get("title_hi"), document.get("title_bn"))
        document["seoSlug"] = unique_slug(base, _slug_exists(collection))

    document["price"] = max(0, document.get("price") or 0)

    result = collection.insert_one(document)
    document["_id"] = result.inserted_id
    logger.info(
        "PDF created",
        extra={"pdf_id": str(result.inserted_id), "seo_slug": document["seoSlug"]},
    )
    return document


def update_pdf(
    collection: Collection,
    id_or_slug: str,
    fields: dict[str, Any],
    projection: dict[str, int] | None = None,
) -> dict[str, Any] | None:
    """Set only the supplied fields; returns the updated document or None."""
    changes = dict(fields)
    if "seoSlug" in changes:
        slug = slugify(changes.pop("seoSlug"))
        if slug:
            changes["seoSlug"] = slug
    if "price" in changes:
        changes["price"] = max(0, changes["price"] or 0)
    changes["updatedAt"] = datetime.now(UTC)

    return collection.find_one_and_update(
        lookup_query(id_or_slug),
        {"$set": changes},
        projection=projection,
        return_document=ReturnDocument.AFTER,
    )


def delete_pdf(collection: Collection, id_or_slug: str) -> bool:
    deleted = collection.find_one_and_delete(lookup_query(id_or_slug), projection={"_id": 1})
    if deleted is not None:
        logger.info("PDF deleted", extra={"pdf_id": str(deleted["_id"])})
    return deleted is not None


def increment_downloads(collection: Collection, pdf_id: ObjectId) -> None:
    """Atomic server-side increment of the download counter."""
    collection.update_one({"_id": pdf_id}, {"$inc": {"downloads": 1}})
