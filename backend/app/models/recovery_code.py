# backend/app/models/recovery_code.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Boolean
from sqlalchemy.orm import relationship

from backend.app.db.base import Base


class RecoveryCode(Base):
    """
    Single-use MFA fallback code.

    Only the SHA-256 of the normalized code is stored. The plaintext batch is
    shown to the user exactly once, when it is generated.
    """
    __tablename__ = "recovery_codes"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code_hash = Column(String(64), nullable=False, index=True)
    is_used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    account = relationship("Account", back_populates="recovery_codes")
