"""Entitlement service: grant, revoke and check access to paid content."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.entitlement import Entitlement, EntitlementKind, EntitlementSource

logger = get_logger(__name__)


def _kind(kind: EntitlementKind | str) -> str:
    return EntitlementKind(kind).value


def get_entitlement(
    db: Session, user_id: UUID, kind: EntitlementKind | str, ref_id: str
) -> Entitlement | None:
    return (
        db.query(Entitlement)
        .filter(
            Entitlement.user_id == user_id,
            Entitlement.kind == _kind(kind),
            Entitlement.ref_id == str(ref_id),
        )
        .first()
    )


def grant(
    db: Session,
    user_id: UUID,
    kind: EntitlementKind | str,
    ref_id: str,
    expires_at: datetime | None = None,
    source: EntitlementSource | str = EntitlementSource.PURCHASE,
    order_ref: str | None = None,
) -> Entitlement:
    """
    Grant `user_id` access to (kind, ref_id).

    There is at most one row per (user, kind, ref_id): granting again
    reactivates that row and replaces its expiry, source and order reference.
    """
    entitlement = get_entitlement(db, user_id, kind, ref_id)
    if entitlement is None:
        entitlement = Entitlement(user_id=user_id, kind=_kind(kind), ref_id=str(ref_id))
        db.add(entitlement)

    entitlement.active = True
    entitlement.expires_at = expires_at
    entitlement.source = EntitlementSource(source).value
    entitlement.order_ref = order_ref

    db.commit()
    db.refresh(entitlement)

    logger.info(
        "Entitlement granted",
        extra={
            "user_id": str(user_id),
            "kind": entitlement.kind,
            "ref_id": entitlement.ref_id,
            "source": entitlement.source,
            "expires_at": expires_at.isoformat() if expires_at else None,
        },
    )
    return entitlement


def revoke(db: Session, user_id: UUID, kind: EntitlementKind | str, ref_id: str) -> bool:
    """Deactivate the entitlement; returns False when none existed."""
    entitlement = get_entitlement(db, user_id, kind, ref_id)
    if entitlement is None:
        return False

    entitlement.active = False
    db.commit()

    logger.info(
        "Entitlement revoked",
        extra={"user_id": str(user_id), "kind": entitlement.kind, "ref_id": entitlement.ref_id},
    )
    return True


def has_access(
    db: Session,
    user_id: UUID,
    kind: EntitlementKind | str,
    ref_id: str,
    now: datetime | None = None,
) -> bool:
    """True when an active entitlement exists that has no expiry or expires after `now`."""
    now = now or datetime.now(UTC)
    match = (
        db.query(Entitlement.id)
        .filter(
            Entitlement.user_id == user_id,
            Entitlement.kind == _kind(kind),
            Entitlement.ref_id == str(ref_id),
            Entitlement.active.is_(True),
            or_(Entitlement.expires_at.is_(None), Entitlement.expires_at > now),
        )
        .first()
    )
    return match is not None


def list_active(db: Session, user_id: UUID, now: datetime | None = None) -> list[Entitlement]:
    """Entitlements of `user_id` that currently grant access, newest first."""
    now = now or datetime.now(UTC)
    return (
        db.query(Entitlement)
        .filter(
            Entitlement.user_id == user_id,
            Entitlement.active.is_(True),
            or_(Entitlement.expires_at.is_(None), Entitlement.expires_at > now),
        )
        .order_by(Entitlement.created_at.desc())
        .all()
    )
