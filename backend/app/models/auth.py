"""Refresh token model."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite drops the offset) as UTC."""
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class RefreshToken(Base):
    """Opaque refresh token, stored hashed, rotated on every use."""

    __tablename__ = "refresh_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash = Column(String, unique=True, nullable=False, index=True)
    issued_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    replaced_by_token_id = Column(Uuid, ForeignKey("refresh_tokens.id"), nullable=True)
    user_agent = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    user = relationship("User", back_populates="refresh_tokens")
    replaced_by_token = relationship(
        "RefreshToken", remote_side=[id], foreign_keys=[replaced_by_token_id]
    )

    def is_active(self) -> bool:
        """Check if token is active (not revoked and not expired)."""
        if self.revoked_at is not None:
            return False
        return datetime.now(UTC) < as_utc(self.expires_at)
