"""PDF catalog schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

PdfLanguage = Literal["en", "hi", "bn", "other"]
PdfLevel = Literal["beginner", "intermediate", "advanced"]
PdfCategory = Literal[
    "ssc-cgl",
    "ssc-chsl",
    "railway",
    "bank-ibps",
    "ibpo",
    "nda",
    "cds",
    "psc",
    "police-constable",
    "police-sub-inspector",
    "state-psc",
    "govt-exams",
    "teaching-nta",
    "other",
]


class PdfKeywords(BaseModel):
    """Per-language keyword lists indexed by Atlas Search."""

    en: list[str] = Field(default_factory=list)
    hi: list[str] = Field(default_factory=list)
    bn: list[str] = Field(default_factory=list)


def _clean_tokens(values: list[str] | None) -> list[str] | None:
    if values is None:
        return None
    return [v.strip() for v in values if v and v.strip()]


class PdfBase(BaseModel):
    """Fields shared by create and update; every one is optional here."""

    title_hi: str | None = Field(default=None, max_length=300)
    title_bn: str | None = Field(default=None, max_length=300)
    description: str | None = None
    keywords: PdfKeywords | None = None
    language: PdfLanguage | None = None
    category: PdfCategory | None = None
    tags: list[str] | None = None
    seoSlug: str | None = Field(default=None, max_length=200)
    metaTitle: str | None = Field(default=None, max_length=160)
    metaDescription: str | None = Field(default=None, max_length=320)
    mimeType: str | None = None
    fileSize: int | None = Field(default=None, ge=0)
    pages: int | None = Field(default=None, ge=0)
    isPaid: bool | None = None
    price: float | None = Field(default=None, ge=0)
    locations: list[str] | None = None
    publishedAt: datetime | None = None
    examDate: datetime | None = None
    level: PdfLevel | None = None
    isFeatured: bool | None = None

    @field_validator("tags", "locations")
    @classmethod
    def strip_tokens(cls, v: list[str] | None) -> list[str] | None:
        return _clean_tokens(v)


class PdfCreate(PdfBase):
    """Admin request to add a document to the catalog."""

    title_en: str = Field(..., min_length=1, max_length=300)
    r2Key: str = Field(..., min_length=1, max_length=1024)

    @field_validator("title_en", "r2Key")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class PdfUpdate(PdfBase):
    """Partial metadata update; fields left out are not touched."""

    title_en: str | None = Field(default=None, min_length=1, max_length=300)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class PdfDetailResponse(BaseModel):
    success: bool = True
    pdf: dict[str, Any]


class SignedUrlRequest(BaseModel):
    """Request for a presigned R2 URL."""

    type: str | None = Field(default=None, max_length=32)
    r2Key: str | None = Field(default=None, max_length=1024)
    contentType: str | None = Field(default=None, max_length=255)


class SignedUrlResponse(BaseModel):
    success: bool = True
    type: Literal["download", "upload"]
    url: str
    expiresIn: int
