"""Entitlement schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.entitlement import EntitlementKind, EntitlementSource


class EntitlementGrantRequest(BaseModel):
    """Admin grant of access to a resource."""

    user_id: UUID
    kind: EntitlementKind = EntitlementKind.PDF
    ref_id: str = Field(..., min_length=1, max_length=64)
    expires_at: datetime | None = None
    source: EntitlementSource = EntitlementSource.ADMIN_GRANT
    order_ref: str | None = Field(default=None, max_length=128)


class EntitlementRevokeRequest(BaseModel):
    user_id: UUID
    kind: EntitlementKind = EntitlementKind.PDF
    ref_id: str = Field(..., min_length=1, max_length=64)


class EntitlementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    kind: str
    ref_id: str
    active: bool
    expires_at: datetime | None = None
    source: str
    order_ref: str | None = None
    created_at: datetime


class EntitlementListResponse(BaseModel):
    success: bool = True
    results: list[EntitlementResponse]
    total: int
