# backend/app/services/revocation.py
"""
Revocation ledger for bearer tokens, plus the background sweep that keeps it small.

Bearer tokens are stateless and short-lived. Logging out or changing the
master password records the token's ``jti`` here until the token would have
expired anyway; after that the row is deleted.
"""
import asyncio
import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.models.revoked_token import RevokedToken
from backend.app.services.tokens import TokenIssuer

logger = logging.getLogger(__name__)


class RevocationLedger:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def is_revoked(self, jti: str) -> bool:
        result = await self.db.execute(
            select(RevokedToken.id).where(RevokedToken.jti == jti).limit(1)
        )
        return result.first() is not None

    async def revoke(
        self,
        jti: str,
        account_id: int,
        expires_at: datetime,
        reason: str | None = None,
    ) -> bool:
        """
        Record ``jti`` as revoked until ``expires_at``.

        Idempotent: revoking an already revoked token is a no-op and returns False.
        """
        if await self.is_revoked(jti):
            return False

        entry = RevokedToken(
            jti=jti,
            account_id=account_id,
            expires_at=expires_at,
            reason=reason,
        )
        try:
            # A concurrent revoke of the same jti loses on the unique index
            async with self.db.begin_nested():
                self.db.add(entry)
        except IntegrityError:
            return False

        logger.info("Bearer token %s revoked for account %s (%s)", jti, account_id, reason)
        return True

    async def sweep(self, now: datetime | None = None) -> int:
        """Delete ledger entries whose token has expired on its own."""
        now = now or datetime.now(timezone.utc)
        result = await self.db.execute(
            delete(RevokedToken)
            .where(RevokedToken.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class RevocationSweeper:
    """
    Periodic cleanup task owned by the application lifespan.

    Each tick uses its own session: it sweeps the revocation ledger and purges
    expired refresh tokens, then commits. A failed tick is logged and the loop
    carries on with the next one.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], interval_seconds: float):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self, now: datetime | None = None) -> tuple[int, int]:
        """Run a single sweep. Returns (ledger entries removed, refresh tokens purged)."""
        now = now or datetime.now(timezone.utc)
        async with self.session_factory() as db:
            swept = await RevocationLedger(db).sweep(now)
            purged = await TokenIssuer(db).purge_expired(now)
            await db.commit()

        if swept or purged:
            logger.info(
                "Sweep removed %d revoked token(s) and %d expired refresh token(s)",
                swept,
                purged,
            )
        return swept, purged

    async def _run(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Revocation sweep failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="revocation-sweeper")
        logger.info("Revocation sweeper started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Revocation sweeper stopped")
