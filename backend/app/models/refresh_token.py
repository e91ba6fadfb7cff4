# backend/app/models/refresh_token.py
"""Refresh tokens with single-use rotation."""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Boolean
from sqlalchemy.orm import relationship

from backend.app.db.base import Base


class RefreshToken(Base):
    """
    Long-lived token exchanged for a new bearer/refresh pair.

    A token is active iff it is not revoked and not expired. Rotation revokes
    the token (reason "rotated") and points replaced_by_token at its successor,
    so a token can be redeemed at most once.
    """
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(128), unique=True, index=True, nullable=False)
    account_id = Column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)

    is_revoked = Column(Boolean, nullable=False, default=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoke_reason = Column(String(50), nullable=True)
    replaced_by_token = Column(String(128), nullable=True)

    account = relationship("Account", back_populates="refresh_tokens")

    __table_args__ = (
        Index("ix_refresh_tokens_account_active", "account_id", "is_revoked", "expires_at"),
    )

    def __repr__(self):
        return (
            f"<RefreshToken(id={self.id}, account_id={self.account_id}, "
            f"revoked={self.is_revoked})>"
        )
