"""
Test configuration and fixtures for Custos tests.
"""
import asyncio
import os
import tempfile
import time
from datetime import datetime, timedelta, timezone

# Settings are read at import time, so the environment is prepared first
_TEST_DIR = tempfile.mkdtemp(prefix="custos-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["REVOCATION_SWEEP_ENABLED"] = "false"

import pyotp  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import update  # noqa: E402

from backend.app import models  # noqa: E402,F401
from backend.app.db.base import Base, get_db  # noqa: E402
from backend.app.db.session import create_engine_for_url, create_session_factory  # noqa: E402
from backend.app.models.refresh_token import RefreshToken  # noqa: E402
from backend.app.security.totp import get_current_totp  # noqa: E402

API = "/api/v1"


def make_proof(label: str) -> str:
    """Stand-in for a client-derived proof (any string of realistic length)."""
    return f"proof-{label}".ljust(44, "0")


async def age_rotation(db, token: str, seconds: int = 3600) -> None:
    """Move the rotation of ``token`` back past the reuse grace window."""
    await db.execute(
        update(RefreshToken)
        .where(RefreshToken.token == token)
        .values(revoked_at=datetime.now(timezone.utc) - timedelta(seconds=seconds))
    )
    await db.commit()


async def _create_tables(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def database_url(tmp_path):
    """File database so separate sessions really are separate connections."""
    return f"sqlite+aiosqlite:///{tmp_path}/test.db"


@pytest_asyncio.fixture
async def engine(database_url):
    engine = create_engine_for_url(database_url)
    await _create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    """Create an isolated test database session for each test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def client(database_url):
    """TestClient bound to a fresh database through a get_db override."""
    from backend.app.main import app

    engine = create_engine_for_url(database_url)
    asyncio.run(_create_tables(engine))
    factory = create_session_factory(engine)

    async def override_get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    # Not used as a context manager: the lifespan (global engine, sweeper) stays off
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()
    asyncio.run(engine.dispose())


@pytest.fixture
def register_user(client):
    """Register an account through the API and return its token bundle."""

    def _register(email="alice@example.com", proof=None, **extra):
        body = {"email": email, "authProof": proof or make_proof(email)}
        body.update(extra)
        response = client.post(f"{API}/auth/register", json=body)
        assert response.status_code == 201, response.text
        return response.json()

    return _register


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def enable_mfa(client):
    """Turn MFA on for the bearer's account; returns (secret, recovery codes)."""

    def _enable(access_token: str):
        setup = client.get(f"{API}/mfa/setup", headers=bearer(access_token))
        assert setup.status_code == 200, setup.text
        secret = setup.json()["secret"]
        enabled = client.post(
            f"{API}/mfa/enable",
            json={"code": get_current_totp(secret)},
            headers=bearer(access_token),
        )
        assert enabled.status_code == 200, enabled.text
        return secret, enabled.json()["recoveryCodes"]

    return _enable


def wrong_totp(secret: str) -> str:
    """A six-digit code outside the accepted window for ``secret``."""
    totp = pyotp.TOTP(secret)
    now = time.time()
    accepted = {totp.at(now + step * totp.interval) for step in (-2, -1, 0, 1, 2)}
    return next(c for c in ("000000", "111111", "222222", "333333", "444444", "555555") if c not in accepted)
