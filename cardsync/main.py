"""
Card Sync — Application Entrypoint

Configures structlog, creates the async SQLAlchemy engine, launches the
browser and dispatches one CLI command.

Run via:
    python -m cardsync.main update-cardsets
    python -m cardsync.main update-cards --all
    python -m cardsync.main update-cards --set SV2a
    python -m cardsync.main resync-all
    python -m cardsync.main download-images
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cardsync.config import settings
from cardsync.pipeline.images import ImageDownloader
from cardsync.pipeline.runner import CardsetNotFoundError, SyncRunner
from cardsync.scraper.bigweb import BigwebScraper
from cardsync.scraper.errors import ScraperError
from cardsync.scraper.session import open_browser
from cardsync.sync.repository import Repository


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def _configure_logging(log_level: str = "INFO") -> None:
    """
    Set up structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    # Configure stdlib logging first (for third-party libraries)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Database Setup
# ---------------------------------------------------------------------------


def create_db_engine(database_url: str | None = None) -> tuple[Any, async_sessionmaker[AsyncSession]]:
    """
    Create SQLAlchemy async engine and session factory.

    Returns:
        (engine, session_factory) tuple.
    """
    engine = create_async_engine(
        database_url or settings.DATABASE_URL,
        echo=False,
        pool_pre_ping=True,
    )
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return engine, session_factory


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cardsync",
        description="Scrape bigweb Pokémon cardsets into the database with resumable sync.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("update-cardsets", help="Discover cardsets from the list page.")

    update_cards = subparsers.add_parser("update-cards", help="Fetch cards of unsynced cardsets.")
    target = update_cards.add_mutually_exclusive_group(required=True)
    target.add_argument("--all", action="store_true", help="Every unsynced cardset.")
    target.add_argument("--set", dest="set_ref", help="One cardset by its code (e.g., SV2a).")

    subparsers.add_parser("resync-all", help="Reset every synced cardset and fetch all again.")
    subparsers.add_parser("download-images", help="Download images for cards without one.")

    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    """Execute one command. Returns the process exit code."""
    logger = structlog.get_logger(__name__)
    engine, session_factory = create_db_engine()
    repository = Repository(session_factory)

    try:
        async with open_browser() as browser:
            runner = SyncRunner(BigwebScraper(browser), repository)

            if args.command == "update-cardsets":
                await runner.update_entire_cardset_db()
            elif args.command == "update-cards" and args.all:
                await runner.update_entire_card_db()
            elif args.command == "update-cards":
                await runner.update_single_set_card_db(args.set_ref)
            elif args.command == "resync-all":
                await runner.resync_all()
            elif args.command == "download-images":
                async with ImageDownloader() as downloader:
                    await runner.download_images(downloader)
    except (CardsetNotFoundError, ScraperError, SQLAlchemyError) as e:
        logger.error(
            "cardsync_command_failed",
            command=args.command,
            error=str(e),
            error_type=type(e).__name__,
        )
        return 1
    finally:
        await engine.dispose()

    logger.info("cardsync_command_complete", command=args.command)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(log_level=settings.LOG_LEVEL)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
