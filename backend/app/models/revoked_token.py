# backend/app/models/revoked_token.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from backend.app.db.base import Base


class RevokedToken(Base):
    """
    A bearer token that must no longer be honoured, identified by its jti.

    expires_at is copied from the bearer token's exp claim. Once it passes the
    token fails its own expiry check, so the row is redundant and the
    background sweep deletes it.
    """
    __tablename__ = "revoked_tokens"

    id = Column(Integer, primary_key=True, index=True)
    jti = Column(String(64), unique=True, index=True, nullable=False)
    account_id = Column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    revoked_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    reason = Column(String(100), nullable=True)

    def __repr__(self):
        return f"<RevokedToken jti={self.jti}>"
