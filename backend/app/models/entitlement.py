"""Entitlement model: a user's right to paid catalog content."""

import uuid
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.auth import as_utc


class EntitlementKind(str, Enum):
    """What kind of resource an entitlement unlocks."""

    PDF = "pdf"
    COURSE = "course"
    QUIZ = "quiz"
    EXAM_UPDATE = "exam-update"


class EntitlementSource(str, Enum):
    """How the entitlement was obtained."""

    PURCHASE = "purchase"
    ADMIN_GRANT = "admin-grant"
    PROMO = "promo"
    TRIAL = "trial"


class Entitlement(Base):
    """
    Access grant for one (user, kind, ref_id).

    ref_id is the catalog document id as a string, since catalog documents
    live in MongoDB. Revocation flips `active` rather than deleting the row.
    """

    __tablename__ = "entitlements"
    __table_args__ = (
        UniqueConstraint("user_id", "kind", "ref_id", name="uq_entitlement_user_kind_ref"),
        Index("ix_entitlements_kind_active_expires", "kind", "active", "expires_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind = Column(String(32), nullable=False, index=True)
    ref_id = Column(String(64), nullable=False, index=True)
    active = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    source = Column(String(32), nullable=False, default=EntitlementSource.PURCHASE.value)
    order_ref = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=func.now(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    user = relationship("User", back_populates="entitlements")

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(UTC)) >= as_utc(self.expires_at)

    def grants_access(self, now: datetime | None = None) -> bool:
        """Active and not past its expiry."""
        return bool(self.active) and not self.is_expired(now)
