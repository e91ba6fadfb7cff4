# backend/app/services/credentials.py
"""
Account credentials: registration, proof verification with lockout,
proof and security-level changes.

The server only ever handles the authentication proof the client derived
from the master secret, never the secret itself.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import AccountLocked, Conflict, InvalidCredentials
from backend.app.models.account import Account
from backend.app.security import hashing
from backend.app.services.tokens import TokenIssuer

logger = logging.getLogger(__name__)

SECURITY_LEVELS = ("fast", "balanced", "strong", "maximum")

REASON_CREDENTIALS_CHANGED = "credentials_changed"

# Verified against when the email is unknown so both paths cost one bcrypt check
_DUMMY_HASH = hashing.get_password_hash("custos-unknown-account")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_security_level(level: str) -> str:
    if level not in SECURITY_LEVELS:
        raise ValueError(f"Unsupported security level: {level}")
    return level


class CredentialStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Account | None:
        result = await self.db.execute(
            select(Account)
            .where(Account.email == normalize_email(email))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_by_id(self, account_id: int) -> Account | None:
        return await self.db.get(Account, account_id)

    async def register(
        self,
        email: str,
        auth_proof: str,
        display_name: str | None = None,
        security_level: str | None = None,
    ) -> Account:
        email = normalize_email(email)
        level = validate_security_level(security_level or settings.DEFAULT_SECURITY_LEVEL)

        if await self.get_by_email(email) is not None:
            raise Conflict()

        account = Account(
            email=email,
            display_name=display_name or email.split("@")[0],
            auth_proof_hash=hashing.get_password_hash(auth_proof),
            security_level=level,
            failed_login_attempts=0,
            is_locked=False,
            mfa_enabled=False,
            recovery_codes_remaining=0,
        )
        self.db.add(account)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            # Lost a race against a concurrent registration of the same email
            await self.db.rollback()
            raise Conflict() from exc

        logger.info("Registered account %s (%s)", account.id, email)
        return account

    async def verify(self, email: str, auth_proof: str) -> Account:
        """
        Check ``auth_proof`` for ``email``.

        A wrong proof increments the failure counter and locks the account
        once it reaches MAX_FAILED_LOGIN_ATTEMPTS. The failure is committed
        before InvalidCredentials propagates. A locked account is rejected
        with AccountLocked whatever proof is presented.
        """
        account = await self.get_by_email(email)
        if account is None:
            hashing.verify_password(auth_proof, _DUMMY_HASH)
            logger.info("Login failed: unknown email")
            raise InvalidCredentials()

        if account.is_locked:
            logger.warning("Login rejected: account %s is locked", account.id)
            raise AccountLocked()

        if not hashing.verify_password(auth_proof, account.auth_proof_hash):
            locked = await self._record_failure(account.id)
            if locked:
                logger.warning(
                    "Account %s locked after %d failed attempts",
                    account.id,
                    settings.MAX_FAILED_LOGIN_ATTEMPTS,
                )
            else:
                logger.info("Login failed for account %s", account.id)
            raise InvalidCredentials()

        now = datetime.now(timezone.utc)
        account.failed_login_attempts = 0
        account.last_login_at = now
        account.last_activity_at = now
        return account

    async def _record_failure(self, account_id: int) -> bool:
        """Increment the failure counter in SQL; returns True if this call locked the account."""
        await self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(failed_login_attempts=Account.failed_login_attempts + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(
            update(Account)
            .where(
                Account.id == account_id,
                Account.is_locked.is_(False),
                Account.failed_login_attempts >= settings.MAX_FAILED_LOGIN_ATTEMPTS,
            )
            .values(is_locked=True, locked_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def check_proof(self, account: Account, auth_proof: str) -> None:
        if not hashing.verify_password(auth_proof, account.auth_proof_hash):
            raise InvalidCredentials()

    async def change_proof(self, account: Account, old_proof: str, new_proof: str) -> int:
        """
        Replace the stored proof hash and revoke every refresh token.

        Returns the number of refresh tokens revoked.
        """
        await self.check_proof(account, old_proof)
        return await self._replace_proof(account, new_proof)

    async def change_security_level(
        self,
        account: Account,
        old_proof: str,
        new_proof: str,
        new_level: str,
    ) -> int:
        """
        Switch KDF cost tier. The proof changes with it because the client
        derives it with the new parameters.
        """
        validate_security_level(new_level)
        await self.check_proof(account, old_proof)
        account.security_level = new_level
        return await self._replace_proof(account, new_proof)

    async def _replace_proof(self, account: Account, new_proof: str) -> int:
        account.auth_proof_hash = hashing.get_password_hash(new_proof)
        account.credentials_changed_at = datetime.now(timezone.utc)
        account.last_activity_at = account.credentials_changed_at
        revoked = await TokenIssuer(self.db).revoke_all(account.id, reason=REASON_CREDENTIALS_CHANGED)
        logger.info(
            "Credentials changed for account %s, %d refresh token(s) revoked",
            account.id,
            revoked,
        )
        return revoked

    async def get_security_level(self, email: str) -> str:
        """Stored level, or the default for unknown emails so the answer does not reveal accounts."""
        account = await self.get_by_email(email)
        if account is None:
            return settings.DEFAULT_SECURITY_LEVEL
        return account.security_level

    async def unlock(self, email: str) -> bool:
        account = await self.get_by_email(email)
        if account is None:
            return False
        account.is_locked = False
        account.locked_at = None
        account.failed_login_attempts = 0
        logger.info("Account %s unlocked", account.id)
        return True
