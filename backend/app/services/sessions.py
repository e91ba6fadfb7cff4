# backend/app/services/sessions.py
"""
Session use cases built from the credential, token, MFA and revocation services.

Each public method is one transaction: it commits when it returns and rolls
back when it raises. Failed sign-in bookkeeping (lockout counter, refresh
token reuse) is committed before the error propagates.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import InvalidMfaCode, RefreshTokenReused
from backend.app.models.account import Account
from backend.app.services.credentials import CredentialStore
from backend.app.services.mfa import MfaEnroller, MfaVerification
from backend.app.services.revocation import RevocationLedger
from backend.app.services.tokens import REASON_REUSE, TokenIssuer, TokenPair

logger = logging.getLogger(__name__)

REASON_LOGOUT = "logout"
REASON_PASSWORD_CHANGED = "password_changed"
REASON_SECURITY_LEVEL_CHANGED = "security_level_changed"
REASON_SIGN_OUT_EVERYWHERE = "sign_out_everywhere"


@dataclass(frozen=True)
class MfaRequired:
    """Login stopped at the second factor; no tokens were issued."""

    email: str


def _claims_expiry(claims: dict[str, Any]) -> datetime:
    return datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)


class SessionOrchestrator:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.credentials = CredentialStore(db)
        self.tokens = TokenIssuer(db)
        self.mfa = MfaEnroller(db)
        self.ledger = RevocationLedger(db)

    async def register(
        self,
        email: str,
        auth_proof: str,
        display_name: str | None = None,
        security_level: str | None = None,
    ) -> TokenPair:
        try:
            account = await self.credentials.register(email, auth_proof, display_name, security_level)
            now = datetime.now(timezone.utc)
            account.last_login_at = now
            account.last_activity_at = now
            pair = await self.tokens.issue_pair(account)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return pair

    async def login(
        self,
        email: str,
        auth_proof: str,
        mfa_code: str | None = None,
    ) -> TokenPair | MfaRequired:
        try:
            account = await self.credentials.verify(email, auth_proof)

            if account.mfa_enabled:
                if not mfa_code:
                    # Keep the counter reset from a correct proof
                    await self.db.commit()
                    return MfaRequired(email=account.email)

                outcome = await self.mfa.verify(account, mfa_code)
                if outcome is MfaVerification.INVALID:
                    await self.db.commit()
                    logger.info("Login failed for account %s: invalid second factor", account.id)
                    raise InvalidMfaCode()

            pair = await self.tokens.issue_pair(account)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Account %s signed in", account.id)
        return pair

    async def refresh(self, refresh_token: str) -> TokenPair:
        try:
            pair = await self.tokens.rotate(refresh_token)
            pair.account.last_activity_at = datetime.now(timezone.utc)
            await self.db.commit()
        except RefreshTokenReused as exc:
            await self.db.rollback()
            if settings.REVOKE_ALL_ON_REFRESH_REUSE:
                await self._revoke_after_reuse(exc.account_id)
            raise
        except Exception:
            await self.db.rollback()
            raise
        return pair

    async def _revoke_after_reuse(self, account_id: int) -> None:
        try:
            revoked = await self.tokens.revoke_all(account_id, reason=REASON_REUSE)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.warning(
            "Revoked %d refresh token(s) of account %s after reuse", revoked, account_id
        )

    async def logout(self, claims: dict[str, Any] | None, refresh_token: str | None) -> None:
        """
        Best effort: revoke the refresh token if it is still active and
        blacklist the bearer token if one was presented. Never fails because
        the refresh token was already invalid.
        """
        account_id = int(claims["sub"]) if claims else None
        try:
            if refresh_token:
                revoked = await self.tokens.revoke(refresh_token, account_id=account_id, reason=REASON_LOGOUT)
                if not revoked:
                    logger.info("Logout: refresh token was already inactive")
            if claims:
                await self.ledger.revoke(
                    claims["jti"], account_id, _claims_expiry(claims), reason=REASON_LOGOUT
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    async def change_password(
        self,
        account: Account,
        claims: dict[str, Any],
        old_proof: str,
        new_proof: str,
    ) -> int:
        try:
            revoked = await self.credentials.change_proof(account, old_proof, new_proof)
            await self.ledger.revoke(
                claims["jti"], account.id, _claims_expiry(claims), reason=REASON_PASSWORD_CHANGED
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return revoked

    async def change_security_level(
        self,
        account: Account,
        claims: dict[str, Any],
        old_proof: str,
        new_proof: str,
        new_level: str,
    ) -> int:
        try:
            revoked = await self.credentials.change_security_level(account, old_proof, new_proof, new_level)
            await self.ledger.revoke(
                claims["jti"], account.id, _claims_expiry(claims), reason=REASON_SECURITY_LEVEL_CHANGED
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return revoked

    async def sign_out_everywhere(self, account: Account, claims: dict[str, Any]) -> int:
        try:
            revoked = await self.tokens.revoke_all(account.id)
            await self.ledger.revoke(
                claims["jti"], account.id, _claims_expiry(claims), reason=REASON_SIGN_OUT_EVERYWHERE
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.info("Account %s signed out everywhere (%d refresh token(s))", account.id, revoked)
        return revoked
