#!/usr/bin/env python3
"""
Database management script.
Creates, drops and resets the schema, checks connectivity and seeds demo accounts.
"""

import argparse
import asyncio
import logging
import sys

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from app.config import settings
from app.database import Base, engine, AsyncSessionLocal
from app.repositories.tag import TagRepository
from app.repositories.user import UserRepository

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEMO_PASSWORD = "demo-password-123"

DEMO_USERS = [
    {"email": "lister@demo.local", "name": "Demo Lister"},
    {"email": "hunter@demo.local", "name": "Demo Hunter"},
]

DEMO_TAGS = [
    ("Garden", "#22c55e"),
    ("Near transport", "#3b82f6"),
    ("Needs work", "#ef4444"),
]


class DatabaseManager:
    """Schema and seed management for a given engine."""

    def __init__(self, target_engine: AsyncEngine = engine, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.engine = target_engine
        self.session_factory = session_factory

    async def check(self) -> bool:
        """Run a trivial query against the database."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Database connection OK")
            return True
        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            return False

    async def create(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("All tables created")

    async def drop(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("All tables dropped")

    async def seed(self) -> int:
        """
        Create the demo accounts and the hunter's starter tags.

        Existing accounts are left alone, so seeding twice is harmless.

        Returns:
            Number of users created
        """
        created = 0
        async with self.session_factory() as session:
            user_repo = UserRepository(session)
            tag_repo = TagRepository(session)

            for demo in DEMO_USERS:
                if await user_repo.get_by_email(demo["email"]):
                    logger.info(f"{demo['email']} already exists, skipping")
                    continue
                user = await user_repo.create_user({**demo, "password": DEMO_PASSWORD})
                created += 1

                if demo["email"].startswith("hunter"):
                    for name, color in DEMO_TAGS:
                        await tag_repo.create({"user_id": user.id, "name": name, "color": color})

        if created:
            logger.info(f"Seeded {created} demo users (password: {DEMO_PASSWORD})")
            logger.warning("Demo accounts are for local development only")
        return created

    async def reset(self) -> None:
        """Drop and recreate every table, then seed."""
        if not (settings.is_development or settings.is_testing):
            raise RuntimeError("Database reset is only allowed in development or test mode")

        logger.warning("Resetting database - all data will be lost!")
        await self.drop()
        await self.create()
        await self.seed()
        logger.info("Database reset completed")


def main():
    """Command line interface for database management."""
    parser = argparse.ArgumentParser(description="Database management")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("check", help="Check database connectivity")
    subparsers.add_parser("create", help="Create all tables")
    drop_parser = subparsers.add_parser("drop", help="Drop all tables")
    drop_parser.add_argument("--confirm", action="store_true", help="Confirm dropping every table")
    subparsers.add_parser("seed", help="Create demo accounts")
    reset_parser = subparsers.add_parser("reset", help="Drop, recreate and seed (development only)")
    reset_parser.add_argument("--confirm", action="store_true", help="Confirm database reset")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    if args.command in ("drop", "reset") and not args.confirm:
        print(f"'{args.command}' requires --confirm")
        return

    manager = DatabaseManager()

    async def run() -> bool:
        try:
            if args.command == "check":
                return await manager.check()
            if args.command == "create":
                await manager.create()
            elif args.command == "drop":
                await manager.drop()
            elif args.command == "seed":
                await manager.seed()
            elif args.command == "reset":
                await manager.reset()
            return True
        finally:
            await manager.engine.dispose()

    try:
        ok = asyncio.run(run())
    except Exception as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
