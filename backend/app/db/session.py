# backend/app/db/session.py
"""
Async database session management for SQLAlchemy.

Production considerations:
- Uses asyncpg for PostgreSQL
- Uses aiosqlite for SQLite (local development and tests)
- Connection pooling configured for production workloads
- Pool settings differ for SQLite (no pooling) vs PostgreSQL

Concurrency considerations:
- Token rotation and lockout counting rely on conditional UPDATE statements.
  PostgreSQL row locks make them compare-and-swap operations.
- SQLite transactions are started with BEGIN IMMEDIATE so that two writers
  queue on the database lock instead of failing on a read-to-write upgrade.
"""
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, AsyncAdaptedQueuePool

from backend.app.core.config import settings


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """Take the SQLite write lock at BEGIN instead of at the first write."""

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        # SQLAlchemy emits BEGIN itself (see below)
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create and configure an async SQLAlchemy engine.

    SQLite:
    - Uses NullPool (SQLite doesn't support connection pooling well)
    - check_same_thread=False for async compatibility
    - BEGIN IMMEDIATE transactions

    PostgreSQL:
    - Uses AsyncAdaptedQueuePool for connection pooling
    - pool_pre_ping=True: Validate connections before use
    - pool_recycle=300: Recycle connections every 5 minutes
    """
    if "sqlite" in database_url.lower():
        engine = create_async_engine(
            database_url,
            echo=echo,
            poolclass=NullPool,
            connect_args={"check_same_thread": False},
        )
        _use_immediate_transactions(engine)
        return engine

    return create_async_engine(
        database_url,
        echo=echo,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=300,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to ``engine``.

    expire_on_commit=False: Allows accessing model attributes after commit
    autoflush=False: Explicit flush control, prevents unexpected queries
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Global async engine instance
# Created once at module load, reused across all requests
# ─────────────────────────────────────────────────────────────────────────────
engine: AsyncEngine = create_engine_for_url(settings.DATABASE_URL, settings.DATABASE_ECHO)

AsyncSessionLocal: async_sessionmaker[AsyncSession] = create_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency generator for database sessions.

    Session lifecycle:
    - Creates new session per request
    - Yields session for endpoint use
    - Automatically closes (and rolls back) after the request completes

    Note: This does NOT auto-commit. Services commit at the end of a use case.
    """
    async with AsyncSessionLocal() as session:
        yield session
