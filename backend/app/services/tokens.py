# backend/app/services/tokens.py
"""
Bearer and refresh token issuance.

Refresh tokens rotate: every successful refresh consumes the presented token
and hands out a new pair. Consumption is a single conditional UPDATE, so two
concurrent refreshes of the same token cannot both succeed.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import InvalidToken, RefreshTokenReused
from backend.app.models.account import Account
from backend.app.models.refresh_token import RefreshToken
from backend.app.security import jwt

logger = logging.getLogger(__name__)

REFRESH_TOKEN_BYTES = 64

REASON_ROTATED = "rotated"
REASON_LOGOUT = "logout"
REASON_REVOKE_ALL = "revoke_all"
REASON_REUSE = "reuse_detected"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    jti: str
    expires_at: datetime
    refresh_expires_at: datetime
    account: Account
    token_type: str = "bearer"


def generate_refresh_token() -> str:
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class TokenIssuer:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def issue_pair(self, account: Account) -> TokenPair:
        """Mint a bearer token and a fresh refresh token for ``account``."""
        access = jwt.create_access_token(
            subject=account.id,
            claims={
                "name": account.display_name,
                "email": account.email,
                "roles": account.roles,
            },
        )
        refresh = RefreshToken(
            token=generate_refresh_token(),
            account_id=account.id,
            expires_at=datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )
        self.db.add(refresh)
        await self.db.flush()

        return TokenPair(
            access_token=access.token,
            refresh_token=refresh.token,
            jti=access.jti,
            expires_at=access.expires_at,
            refresh_expires_at=refresh.expires_at,
            account=account,
        )

    async def rotate(self, token: str) -> TokenPair:
        """
        Exchange an active refresh token for a new pair.

        Raises InvalidToken when the token is unknown, expired, revoked or
        already rotated, and its RefreshTokenReused subclass when a token
        rotated earlier than the grace window is replayed. Revoking the
        account's other sessions on reuse is left to the caller.
        """
        if not token:
            raise InvalidToken()

        now = datetime.now(timezone.utc)
        result = await self.db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.token == token,
                RefreshToken.is_revoked.is_(False),
                RefreshToken.expires_at > now,
            )
            .values(is_revoked=True, revoked_at=now, revoke_reason=REASON_ROTATED)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self._handle_rejected(token, now)
            raise InvalidToken()

        account_id = (
            await self.db.execute(
                select(RefreshToken.account_id).where(RefreshToken.token == token)
            )
        ).scalar_one()

        account = await self.db.get(Account, account_id)
        if account is None:
            raise InvalidToken()

        pair = await self.issue_pair(account)
        await self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.token == token)
            .values(replaced_by_token=pair.refresh_token)
            .execution_options(synchronize_session=False)
        )
        logger.info("Refresh token rotated for account %s", account_id)
        return pair

    async def _handle_rejected(self, token: str, now: datetime) -> None:
        """
        Log why ``token`` was refused and raise RefreshTokenReused for a replay.

        A token rotated within the grace window lost a concurrent refresh of
        the same token and is refused like any other inactive token.
        """
        existing = (
            await self.db.execute(
                select(RefreshToken)
                .where(RefreshToken.token == token)
                .execution_options(populate_existing=True)
            )
        ).scalars().first()
        if existing is None:
            logger.info("Refresh rejected: unknown token")
            return
        if existing.revoke_reason != REASON_ROTATED:
            logger.info(
                "Refresh rejected for account %s: token %s",
                existing.account_id,
                "revoked" if existing.is_revoked else "expired",
            )
            return

        grace = timedelta(seconds=settings.REFRESH_REUSE_GRACE_SECONDS)
        if _as_utc(existing.revoked_at) > now - grace:
            logger.info(
                "Refresh rejected for account %s: token rotated by a concurrent request",
                existing.account_id,
            )
            return

        logger.warning(
            "Refresh token reuse detected for account %s", existing.account_id
        )
        raise RefreshTokenReused(existing.account_id)

    async def revoke(
        self,
        token: str,
        account_id: int | None = None,
        reason: str = REASON_LOGOUT,
    ) -> bool:
        """Revoke one active token. Returns False when nothing changed."""
        if not token:
            return False
        now = datetime.now(timezone.utc)
        stmt = update(RefreshToken).where(
            RefreshToken.token == token,
            RefreshToken.is_revoked.is_(False),
            RefreshToken.expires_at > now,
        )
        if account_id is not None:
            stmt = stmt.where(RefreshToken.account_id == account_id)
        result = await self.db.execute(
            stmt.values(is_revoked=True, revoked_at=now, revoke_reason=reason)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def revoke_all(self, account_id: int, reason: str = REASON_REVOKE_ALL) -> int:
        now = datetime.now(timezone.utc)
        result = await self.db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.account_id == account_id,
                RefreshToken.is_revoked.is_(False),
                RefreshToken.expires_at > now,
            )
            .values(is_revoked=True, revoked_at=now, revoke_reason=reason)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete refresh tokens whose expiry has passed."""
        now = now or datetime.now(timezone.utc)
        result = await self.db.execute(
            delete(RefreshToken)
            .where(RefreshToken.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def active_tokens(self, account_id: int) -> list[RefreshToken]:
        now = datetime.now(timezone.utc)
        result = await self.db.execute(
            select(RefreshToken).where(
                RefreshToken.account_id == account_id,
                RefreshToken.is_revoked.is_(False),
                RefreshToken.expires_at > now,
            )
        )
        return list(result.scalars().all())

    @staticmethod
    def decode_bearer(token: str) -> dict[str, Any]:
        return jwt.decode_access_token(token)
