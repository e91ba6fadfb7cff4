# backend/app/services/mfa.py
"""
TOTP enrollment and verification.

State machine: disabled -> pending (setup issued a secret) -> enabled, and
enabled -> disabled. A pending secret does nothing until a code generated
from it has been confirmed.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import (
    AlreadyEnabled,
    InvalidCredentials,
    InvalidMfaCode,
    MfaSetupMissing,
    NotEnabled,
)
from backend.app.models.account import Account
from backend.app.models.recovery_code import RecoveryCode
from backend.app.security import hashing, recovery, totp

logger = logging.getLogger(__name__)


class MfaVerification(str, enum.Enum):
    """Outcome of checking a second-factor code."""

    TOTP = "totp"
    RECOVERY = "recovery"
    INVALID = "invalid"

    @property
    def ok(self) -> bool:
        return self is not MfaVerification.INVALID


@dataclass(frozen=True)
class MfaSetup:
    secret: str
    manual_entry_key: str
    provisioning_uri: str
    qr_code: str


@dataclass(frozen=True)
class MfaStatus:
    enabled: bool
    pending: bool
    enabled_at: datetime | None
    recovery_codes_remaining: int


class MfaEnroller:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def begin_enrollment(self, account: Account) -> MfaSetup:
        if account.mfa_enabled:
            raise AlreadyEnabled()

        secret = totp.generate_totp_secret()
        account.mfa_pending_secret = secret
        uri = totp.get_totp_uri(secret, account.email)
        logger.info("MFA setup started for account %s", account.id)
        return MfaSetup(
            secret=secret,
            manual_entry_key=totp.format_secret(secret),
            provisioning_uri=uri,
            qr_code=totp.generate_qr_code_data_uri(uri),
        )

    async def confirm_enrollment(self, account: Account, code: str) -> list[str]:
        """Promote the pending secret once ``code`` matches it. Returns the recovery codes."""
        if account.mfa_enabled:
            raise AlreadyEnabled()
        if not account.mfa_pending_secret:
            raise MfaSetupMissing()
        if not totp.verify_totp(account.mfa_pending_secret, code):
            raise InvalidMfaCode()

        account.mfa_secret = account.mfa_pending_secret
        account.mfa_pending_secret = None
        account.mfa_enabled = True
        account.mfa_enabled_at = datetime.now(timezone.utc)
        codes = await self._replace_recovery_codes(account)
        logger.info("MFA enabled for account %s", account.id)
        return codes

    async def verify(self, account: Account, code: str) -> MfaVerification:
        """TOTP first, then a single-use recovery code."""
        if not account.mfa_enabled or not account.mfa_secret or not code:
            return MfaVerification.INVALID

        if totp.verify_totp(account.mfa_secret, code):
            return MfaVerification.TOTP

        if recovery.looks_like_recovery_code(code) and await self.consume_recovery_code(account, code):
            logger.info(
                "Recovery code used by account %s, %d left",
                account.id,
                account.recovery_codes_remaining,
            )
            return MfaVerification.RECOVERY

        return MfaVerification.INVALID

    async def consume_recovery_code(self, account: Account, code: str) -> bool:
        now = datetime.now(timezone.utc)
        result = await self.db.execute(
            update(RecoveryCode)
            .where(
                RecoveryCode.account_id == account.id,
                RecoveryCode.code_hash == recovery.hash_recovery_code(code),
                RecoveryCode.is_used.is_(False),
            )
            .values(is_used=True, used_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        account.recovery_codes_remaining = await self._count_unused(account.id)
        return True

    async def disable(self, account: Account, auth_proof: str, code: str) -> None:
        if not account.mfa_enabled:
            raise NotEnabled()
        if not hashing.verify_password(auth_proof, account.auth_proof_hash):
            raise InvalidCredentials()
        if not (await self.verify(account, code)).ok:
            raise InvalidMfaCode()

        account.mfa_enabled = False
        account.mfa_secret = None
        account.mfa_pending_secret = None
        account.mfa_enabled_at = None
        account.recovery_codes_remaining = 0
        await self.db.execute(
            delete(RecoveryCode)
            .where(RecoveryCode.account_id == account.id)
            .execution_options(synchronize_session=False)
        )
        logger.info("MFA disabled for account %s", account.id)

    async def regenerate_recovery_codes(self, account: Account) -> list[str]:
        if not account.mfa_enabled:
            raise NotEnabled()
        codes = await self._replace_recovery_codes(account)
        logger.info("Recovery codes regenerated for account %s", account.id)
        return codes

    def status(self, account: Account) -> MfaStatus:
        return MfaStatus(
            enabled=bool(account.mfa_enabled),
            pending=bool(account.mfa_pending_secret),
            enabled_at=account.mfa_enabled_at,
            recovery_codes_remaining=account.recovery_codes_remaining or 0,
        )

    async def _replace_recovery_codes(self, account: Account) -> list[str]:
        await self.db.execute(
            delete(RecoveryCode)
            .where(RecoveryCode.account_id == account.id)
            .execution_options(synchronize_session=False)
        )
        codes = recovery.generate_recovery_codes(settings.RECOVERY_CODE_COUNT)
        self.db.add_all(
            RecoveryCode(account_id=account.id, code_hash=recovery.hash_recovery_code(c))
            for c in codes
        )
        await self.db.flush()
        account.recovery_codes_remaining = len(codes)
        return codes

    async def _count_unused(self, account_id: int) -> int:
        result = await self.db.execute(
            select(func.count(RecoveryCode.id)).where(
                RecoveryCode.account_id == account_id,
                RecoveryCode.is_used.is_(False),
            )
        )
        return result.scalar_one()
