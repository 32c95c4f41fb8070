"""Entitlement endpoints."""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.core.app_exceptions import raise_not_found
from app.core.dependencies import AdminUser, CurrentUser
from app.core.security_logging import log_security_event
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import StatusResponse
from app.schemas.entitlement import (
    EntitlementGrantRequest,
    EntitlementListResponse,
    EntitlementResponse,
    EntitlementRevokeRequest,
)
from app.services import entitlements

router = APIRouter(tags=["Entitlements"])


@router.get(
    "/me",
    response_model=EntitlementListResponse,
    summary="My entitlements",
    description="Entitlements of the current user that grant access right now.",
)
async def my_entitlements(
    current_user: CurrentUser,
    db: Session = Depends(get_db),
) -> EntitlementListResponse:
    active = entitlements.list_active(db, current_user.id)
    return EntitlementListResponse(
        results=[EntitlementResponse.model_validate(e) for e in active],
        total=len(active),
    )


@router.post(
    "",
    response_model=EntitlementResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Grant entitlement",
    description="Grant (or re-activate) a user's access to a resource (admin only).",
)
async def grant_entitlement(
    body: EntitlementGrantRequest,
    request: Request,
    admin: AdminUser,
    db: Session = Depends(get_db),
) -> EntitlementResponse:
    if db.get(User, body.user_id) is None:
        raise_not_found("User not found")

    entitlement = entitlements.grant(
        db,
        body.user_id,
        body.kind,
        body.ref_id,
        expires_at=body.expires_at,
        source=body.source,
        order_ref=body.order_ref,
    )
    log_security_event(
        request,
        event_type="entitlement_granted",
        outcome="allow",
        user_id=str(admin.id),
        target_user_id=str(body.user_id),
        kind=entitlement.kind,
        ref_id=entitlement.ref_id,
    )
    return EntitlementResponse.model_validate(entitlement)


@router.delete(
    "",
    response_model=StatusResponse,
    summary="Revoke entitlement",
    description="Deactivate a user's entitlement (admin only). The record is kept.",
)
async def revoke_entitlement(
    body: EntitlementRevokeRequest,
    request: Request,
    admin: AdminUser,
    db: Session = Depends(get_db),
) -> StatusResponse:
    if not entitlements.revoke(db, body.user_id, body.kind, body.ref_id):
        raise_not_found("Entitlement not found")

    log_security_event(
        request,
        event_type="entitlement_revoked",
        outcome="allow",
        user_id=str(admin.id),
        target_user_id=str(body.user_id),
        kind=body.kind.value,
        ref_id=body.ref_id,
    )
    return StatusResponse(status="ok", message="Entitlement revoked")
