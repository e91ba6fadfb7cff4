# backend/app/models/account.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from backend.app.db.base import Base


class Account(Base):
    """
    A user of the vault.

    The server never sees the master secret. The client derives an
    authentication proof from it and the server keeps only a bcrypt hash
    of that proof. The key that encrypts vault items is derived from the
    same secret with a different salt and never leaves the client.
    """
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(100), nullable=False)
    role = Column(String(50), nullable=False, default="User")

    # bcrypt(authProof). Replaced only by a proof change or a security-level change.
    auth_proof_hash = Column(String(255), nullable=False)

    # KDF cost tier the client must replay at next login (not secret)
    security_level = Column(String(20), nullable=False, default="balanced")

    # --- Lockout ---
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    is_locked = Column(Boolean, nullable=False, default=False)
    locked_at = Column(DateTime(timezone=True), nullable=True)

    # --- MFA ---
    mfa_enabled = Column(Boolean, nullable=False, default=False)
    # Present only while MFA is enabled
    mfa_secret = Column(String(64), nullable=True)
    # Generated by setup, promoted to mfa_secret once a code is confirmed
    mfa_pending_secret = Column(String(64), nullable=True)
    mfa_enabled_at = Column(DateTime(timezone=True), nullable=True)
    # Always equals the number of unused rows in recovery_codes
    recovery_codes_remaining = Column(Integer, nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    last_activity_at = Column(DateTime(timezone=True), nullable=True)
    credentials_changed_at = Column(DateTime(timezone=True), nullable=True)

    refresh_tokens = relationship(
        "RefreshToken", back_populates="account", cascade="all, delete-orphan"
    )
    recovery_codes = relationship(
        "RecoveryCode", back_populates="account", cascade="all, delete-orphan"
    )

    @property
    def roles(self) -> list[str]:
        return [r.strip() for r in (self.role or "").split(",") if r.strip()]

    def __repr__(self):
        return f"<Account(id={self.id}, email={self.email!r}, locked={self.is_locked})>"
