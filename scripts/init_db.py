"""
Card Sync — Local Database Bootstrap

Creates the cardsets and bigweb_cards tables directly from the ORM models.
Production databases are migrated with Alembic instead; this is for local
runs against SQLite or a scratch Postgres.

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --database-url sqlite+aiosqlite:///cardsync.db
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

from sqlalchemy.ext.asyncio import create_async_engine

# Resolve project root so this script can be run from any working directory
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cardsync.config import settings
from cardsync.models import Base


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create Card Sync tables.")
    parser.add_argument(
        "--database-url",
        type=str,
        default=settings.DATABASE_URL,
        help="SQLAlchemy async URL (default: DATABASE_URL from settings).",
    )
    return parser.parse_args()


async def create_tables(database_url: str) -> list[str]:
    engine = create_async_engine(database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    return sorted(Base.metadata.tables)


async def main() -> None:
    args = parse_args()
    try:
        tables = await create_tables(args.database_url)
    except Exception as e:
        print(f"Failed to create tables: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Tables ready: {', '.join(tables)}")


if __name__ == "__main__":
    asyncio.run(main())
