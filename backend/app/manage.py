# backend/app/manage.py
"""
Administrative commands.

    python -m backend.app.manage init-db
    python -m backend.app.manage unlock user@example.com
    python -m backend.app.manage sweep
"""
import argparse
import asyncio
import logging
import sys

from backend.app import models  # noqa: F401
from backend.app.core.config import settings
from backend.app.core.logger import configure_logging
from backend.app.db.base import AsyncSessionLocal, Base, engine
from backend.app.services.credentials import CredentialStore
from backend.app.services.revocation import RevocationSweeper

logger = logging.getLogger("backend.app.manage")


async def init_db() -> int:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables created on %s", engine.url.render_as_string(hide_password=True))
    return 0


async def unlock(email: str) -> int:
    async with AsyncSessionLocal() as db:
        unlocked = await CredentialStore(db).unlock(email)
        await db.commit()
    if not unlocked:
        logger.error("No account found for %s", email)
        return 1
    return 0


async def sweep() -> int:
    swept, purged = await RevocationSweeper(AsyncSessionLocal, 0).run_once()
    print(f"Removed {swept} revoked token(s) and {purged} expired refresh token(s)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m backend.app.manage", description=f"{settings.PROJECT_NAME} admin commands")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create database tables")
    unlock_parser = sub.add_parser("unlock", help="Clear the lockout of an account")
    unlock_parser.add_argument("email")
    sub.add_parser("sweep", help="Delete expired revocation entries and refresh tokens")
    return parser


async def run(args: argparse.Namespace) -> int:
    try:
        if args.command == "init-db":
            return await init_db()
        if args.command == "unlock":
            return await unlock(args.email)
        return await sweep()
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.LOG_LEVEL)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
