"""
Tests for bearer and refresh token issuance and rotation.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from backend.app.core.config import settings
from backend.app.core.exceptions import InvalidToken, RefreshTokenReused
from backend.app.models.refresh_token import RefreshToken
from backend.app.security import jwt
from backend.app.services.credentials import CredentialStore
from backend.app.services.sessions import SessionOrchestrator
from backend.app.services.tokens import TokenIssuer
from tests.conftest import age_rotation, make_proof


async def _account(db, email="alice@example.com"):
    account = await CredentialStore(db).register(email, make_proof(email), display_name="Alice")
    await db.commit()
    return account


class TestIssuePair:
    """issue_pair mints a bearer token and a refresh token."""

    @pytest.mark.asyncio
    async def test_claims(self, db):
        account = await _account(db)
        pair = await TokenIssuer(db).issue_pair(account)
        await db.commit()

        claims = jwt.decode_access_token(pair.access_token)
        assert claims["sub"] == str(account.id)
        assert claims["email"] == "alice@example.com"
        assert claims["name"] == "Alice"
        assert claims["roles"] == ["User"]
        assert claims["jti"] == pair.jti
        assert claims["iss"] == settings.JWT_ISSUER
        assert claims["aud"] == settings.JWT_AUDIENCE
        assert claims["exp"] - claims["iat"] == pytest.approx(
            settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60, abs=1
        )

    @pytest.mark.asyncio
    async def test_refresh_lifetime(self, db):
        account = await _account(db)
        pair = await TokenIssuer(db).issue_pair(account)

        lifetime = pair.refresh_expires_at - datetime.now(timezone.utc)
        assert timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS) - lifetime < timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_each_pair_is_unique(self, db):
        account = await _account(db)
        issuer = TokenIssuer(db)
        first = await issuer.issue_pair(account)
        second = await issuer.issue_pair(account)

        assert first.jti != second.jti
        assert first.refresh_token != second.refresh_token

    def test_tampered_bearer_rejected(self):
        token = jwt.create_access_token(subject=1).token

        with pytest.raises(InvalidToken):
            jwt.decode_access_token(token[:-2] + ("A" if token[-2] != "A" else "B") + token[-1])

    def test_expired_bearer_rejected(self):
        token = jwt.create_access_token(subject=1, expires_delta=timedelta(seconds=-30)).token

        with pytest.raises(InvalidToken):
            jwt.decode_access_token(token)


class TestRotate:
    """Refresh tokens are single use."""

    @pytest.mark.asyncio
    async def test_rotate_returns_new_pair(self, db):
        account = await _account(db)
        issuer = TokenIssuer(db)
        original = await issuer.issue_pair(account)
        await db.commit()

        rotated = await issuer.rotate(original.refresh_token)
        await db.commit()

        assert rotated.refresh_token != original.refresh_token
        assert rotated.account.id == account.id

        old = (
            await db.execute(
                select(RefreshToken)
                .where(RefreshToken.token == original.refresh_token)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert old.is_revoked
        assert old.revoke_reason == "rotated"
        assert old.replaced_by_token == rotated.refresh_token

    @pytest.mark.asyncio
    async def test_second_rotation_fails(self, db):
        account = await _account(db)
        issuer = TokenIssuer(db)
        original = await issuer.issue_pair(account)
        await db.commit()

        await issuer.rotate(original.refresh_token)
        await db.commit()

        with pytest.raises(InvalidToken):
            await issuer.rotate(original.refresh_token)

    @pytest.mark.asyncio
    async def test_replay_after_grace_window_reports_reuse(self, db):
        """A stale replay names the owning account and revokes nothing by itself."""
        account = await _account(db)
        account_id = account.id
        issuer = TokenIssuer(db)
        original = await issuer.issue_pair(account)
        await db.commit()

        rotated = await issuer.rotate(original.refresh_token)
        await db.commit()
        await age_rotation(db, original.refresh_token)

        with pytest.raises(RefreshTokenReused) as excinfo:
            await issuer.rotate(original.refresh_token)
        await db.rollback()

        assert excinfo.value.account_id == account_id
        assert excinfo.value.detail == "Invalid token"
        assert [t.token for t in await issuer.active_tokens(account_id)] == [rotated.refresh_token]

    @pytest.mark.asyncio
    async def test_replay_within_grace_window_is_not_reuse(self, db):
        account = await _account(db)
        issuer = TokenIssuer(db)
        original = await issuer.issue_pair(account)
        await db.commit()

        rotated = await issuer.rotate(original.refresh_token)
        await db.commit()

        with pytest.raises(InvalidToken) as excinfo:
            await issuer.rotate(original.refresh_token)
        await db.rollback()

        assert not isinstance(excinfo.value, RefreshTokenReused)
        assert await issuer.rotate(rotated.refresh_token)

    @pytest.mark.asyncio
    async def test_unknown_and_empty_tokens(self, db):
        issuer = TokenIssuer(db)

        with pytest.raises(InvalidToken):
            await issuer.rotate("does-not-exist")
        with pytest.raises(InvalidToken):
            await issuer.rotate("")

    @pytest.mark.asyncio
    async def test_expired_token_rejected(self, db):
        account = await _account(db)
        db.add(
            RefreshToken(
                token="expired-token",
                account_id=account.id,
                expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
            )
        )
        await db.commit()

        with pytest.raises(InvalidToken):
            await TokenIssuer(db).rotate("expired-token")

    @pytest.mark.asyncio
    async def test_concurrent_refresh_single_winner(self, session_factory):
        """Two simultaneous refreshes of one token: one wins and its session survives."""
        assert settings.REVOKE_ALL_ON_REFRESH_REUSE
        async with session_factory() as setup:
            account = await _account(setup)
            pair = await TokenIssuer(setup).issue_pair(account)
            await setup.commit()

        async def attempt():
            async with session_factory() as session:
                try:
                    return await SessionOrchestrator(session).refresh(pair.refresh_token)
                except InvalidToken as exc:
                    return exc

        outcomes = await asyncio.gather(attempt(), attempt())

        winners = [o for o in outcomes if not isinstance(o, InvalidToken)]
        losers = [o for o in outcomes if isinstance(o, InvalidToken)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert not isinstance(losers[0], RefreshTokenReused)

        async with session_factory() as session:
            again = await SessionOrchestrator(session).refresh(winners[0].refresh_token)
        assert again.account.id == account.id


class TestRevoke:
    """Single and bulk revocation."""

    @pytest.mark.asyncio
    async def test_revoke_once(self, db):
        account = await _account(db)
        issuer = TokenIssuer(db)
        pair = await issuer.issue_pair(account)
        await db.commit()

        assert await issuer.revoke(pair.refresh_token) is True
        assert await issuer.revoke(pair.refresh_token) is False

    @pytest.mark.asyncio
    async def test_revoke_checks_owner(self, db):
        alice = await _account(db, "alice@example.com")
        bob = await _account(db, "bob@example.com")
        issuer = TokenIssuer(db)
        pair = await issuer.issue_pair(alice)
        await db.commit()

        assert await issuer.revoke(pair.refresh_token, account_id=bob.id) is False
        assert await issuer.revoke(pair.refresh_token, account_id=alice.id) is True

    @pytest.mark.asyncio
    async def test_revoke_all(self, db):
        account = await _account(db)
        issuer = TokenIssuer(db)
        for _ in range(3):
            await issuer.issue_pair(account)
        await db.commit()

        assert await issuer.revoke_all(account.id) == 3
        assert await issuer.active_tokens(account.id) == []

    @pytest.mark.asyncio
    async def test_purge_expired(self, db):
        account = await _account(db)
        issuer = TokenIssuer(db)
        live = await issuer.issue_pair(account)
        db.add(
            RefreshToken(
                token="old-token",
                account_id=account.id,
                expires_at=datetime.now(timezone.utc) - timedelta(days=1),
            )
        )
        await db.commit()

        assert await issuer.purge_expired() == 1
        await db.commit()
        remaining = (await db.execute(select(RefreshToken.token))).scalars().all()
        assert remaining == [live.refresh_token]
