# backend/app/api/deps.py
from typing import Any, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import InvalidToken, Unauthorized
from backend.app.db.base import get_db
from backend.app.models.account import Account
from backend.app.services.credentials import CredentialStore
from backend.app.services.mfa import MfaEnroller
from backend.app.services.revocation import RevocationLedger
from backend.app.services.sessions import SessionOrchestrator
from backend.app.services.tokens import TokenIssuer

# Missing credentials are reported by get_current_claims
bearer_scheme = HTTPBearer(auto_error=False)


def get_sessions(db: AsyncSession = Depends(get_db)) -> SessionOrchestrator:
    return SessionOrchestrator(db)


def get_credentials(db: AsyncSession = Depends(get_db)) -> CredentialStore:
    return CredentialStore(db)


def get_mfa(db: AsyncSession = Depends(get_db)) -> MfaEnroller:
    return MfaEnroller(db)


async def get_current_claims(
        db: AsyncSession = Depends(get_db),
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict[str, Any]:
    """Decoded claims of a valid, non-revoked bearer token."""
    if credentials is None or not credentials.credentials:
        raise Unauthorized()

    try:
        claims = TokenIssuer.decode_bearer(credentials.credentials)
    except InvalidToken:
        raise Unauthorized()

    if await RevocationLedger(db).is_revoked(claims["jti"]):
        raise Unauthorized("Token has been revoked")

    return claims


async def get_optional_claims(
        db: AsyncSession = Depends(get_db),
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[dict[str, Any]]:
    """Like get_current_claims, but an absent or unusable bearer yields None."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return await get_current_claims(db, credentials)
    except Unauthorized:
        return None


async def get_current_account(
        db: AsyncSession = Depends(get_db),
        claims: dict[str, Any] = Depends(get_current_claims),
) -> Account:
    try:
        account_id = int(claims["sub"])
    except (TypeError, ValueError):
        raise Unauthorized()

    account = await db.get(Account, account_id)
    if account is None:
        raise Unauthorized()
    return account
