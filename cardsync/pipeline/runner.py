"""
Card Sync — Sync Runner

Orchestrates scraper, repository and sync tracker:

1. update_entire_cardset_db()  discover cardsets from the list page
2. sync_cardset(id)            fetch → partition → upsert → checkpoint
3. update_entire_card_db()     sync every UNSYNCED cardset
4. resync_all()                reset every SYNCED cardset, then 3.
5. download_images()           fetch images for cards that have none

A failing cardset is logged and left UNSYNCED; the run moves on to the next.
"""

from __future__ import annotations

import asyncio
from typing import NamedTuple

import httpx
import structlog
from sqlalchemy.exc import SQLAlchemyError

from cardsync.config import settings
from cardsync.pipeline.images import ImageDownloader
from cardsync.scraper.bigweb import BigwebScraper
from cardsync.scraper.errors import ScraperError
from cardsync.scraper.parser import CardsetURL
from cardsync.sync.partition import partition
from cardsync.sync.repository import Repository
from cardsync.sync.tracker import SyncState, SyncTracker

logger = structlog.get_logger(__name__)


class CardsetNotFoundError(Exception):
    """No cardset with the requested ref has been discovered yet."""


class RunSummary(NamedTuple):
    """Per-run cardset counts."""
    synced: int
    unsynced: int
    failed: int


class SyncRunner:
    """
    Usage:
        runner = SyncRunner(scraper, repository)
        summary = await runner.update_entire_card_db()
    """

    def __init__(
        self,
        scraper: BigwebScraper,
        repository: Repository,
        tracker: SyncTracker | None = None,
        concurrency: int | None = None,
    ) -> None:
        self.scraper = scraper
        self.repository = repository
        self.tracker = tracker or SyncTracker(repository)
        self._concurrency = max(1, concurrency or settings.SYNC_CONCURRENCY)

    # -----------------------------------------------------------------------
    # Cardsets
    # -----------------------------------------------------------------------

    async def update_entire_cardset_db(self) -> int:
        """Discover cardsets and upsert them. Returns the number stored."""
        outcomes = await self.scraper.fetch_cardsets()
        cardsets, errors = partition(outcomes)

        for error in errors:
            logger.error("runner_cardset_discovery_failed", error=str(error), source="runner")

        stored = 0
        rejected = 0
        for cardset in cardsets:
            logger.debug("runner_cardset_discovered", cardset_id=cardset.id, ref=cardset.ref, source="runner")
            try:
                await self.repository.upsert_collection(cardset)
            except SQLAlchemyError as e:
                # e.g. the ref is already stored under another cardset id
                logger.error(
                    "runner_cardset_store_failed",
                    cardset_id=cardset.id,
                    ref=cardset.ref,
                    error=str(e),
                    error_type=type(e).__name__,
                    source="runner",
                )
                rejected += 1
                continue
            stored += 1

        logger.info(
            "runner_cardsets_updated",
            stored=stored,
            failed=len(errors) + rejected,
            source="runner",
        )
        return stored

    # -----------------------------------------------------------------------
    # Cards
    # -----------------------------------------------------------------------

    async def sync_cardset(self, cardset_id: str) -> SyncState:
        """
        Fetch one cardset, store every parsed card and update its checkpoint.

        Raises:
            ScraperError: the batch could not be fetched.
            SQLAlchemyError: the batch could not be stored.

            Either way the cardset is recorded UNSYNCED before the error
            propagates.
        """
        cardset_url = CardsetURL.from_cardset_id(cardset_id)
        try:
            outcomes = await self.scraper.fetch_cards(cardset_url)
        except ScraperError as e:
            await self._record_failure(cardset_id, e)
            raise

        cards, errors = partition(outcomes)
        for error in errors:
            logger.error(
                "runner_card_parse_failed",
                cardset_id=cardset_id,
                error=str(error),
                error_type=type(error).__name__,
                source="runner",
            )

        try:
            for card in cards:
                await self.repository.upsert_record(card)
            state = await self.tracker.record_attempt(cardset_id, cards, errors)
        except SQLAlchemyError as e:
            await self._record_failure(cardset_id, e)
            raise

        logger.info(
            "runner_cardset_synced",
            cardset_id=cardset_id,
            cards=len(cards),
            errors=len(errors),
            state=state.value,
            source="runner",
        )
        return state

    async def _record_failure(self, cardset_id: str, error: Exception) -> None:
        try:
            await self.tracker.record_failure(cardset_id, error)
        except SQLAlchemyError as e:
            # The checkpoint write failed too; the original error still propagates.
            logger.error(
                "runner_record_failure_failed",
                cardset_id=cardset_id,
                error=str(e),
                source="runner",
            )

    async def update_single_set_card_db(self, ref: str) -> SyncState:
        """
        Raises:
            CardsetNotFoundError: no cardset with this ref is stored.
        """
        cardset_id = await self.repository.get_cardset_id(ref)
        if cardset_id is None:
            raise CardsetNotFoundError(f"set is not exist {ref}")
        return await self.sync_cardset(cardset_id)

    async def update_entire_card_db(self) -> RunSummary:
        """Sync every UNSYNCED cardset; failures never stop the run."""
        cardset_ids = await self.repository.get_cardset_ids(synced=False)
        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_one(cardset_id: str) -> SyncState | None:
            async with semaphore:
                try:
                    return await self.sync_cardset(cardset_id)
                except (ScraperError, SQLAlchemyError) as e:
                    logger.error(
                        "runner_cardset_failed",
                        cardset_id=cardset_id,
                        error=str(e),
                        error_type=type(e).__name__,
                        source="runner",
                    )
                    return None

        states = await asyncio.gather(*(run_one(cardset_id) for cardset_id in cardset_ids))

        summary = RunSummary(
            synced=sum(1 for s in states if s == SyncState.SYNCED),
            unsynced=sum(1 for s in states if s == SyncState.UNSYNCED),
            failed=sum(1 for s in states if s is None),
        )
        logger.info("runner_card_db_updated", **summary._asdict(), source="runner")
        return summary

    async def unsync_entire_cardset_db(self) -> int:
        cardset_ids = await self.repository.get_cardset_ids(synced=True)
        for cardset_id in cardset_ids:
            await self.tracker.reset(cardset_id)
        return len(cardset_ids)

    async def resync_all(self) -> RunSummary:
        reset = await self.unsync_entire_cardset_db()
        logger.info("runner_resync_all", reset=reset, source="runner")
        return await self.update_entire_card_db()

    # -----------------------------------------------------------------------
    # Images
    # -----------------------------------------------------------------------

    async def download_images(self, downloader: ImageDownloader) -> int:
        """Download images for cards without one. Returns the number saved."""
        card_ids = await self.repository.fetch_card_ids_without_image()
        saved = 0
        for card_id in card_ids:
            try:
                image_url = await self.scraper.fetch_card_image_url(card_id)
                await downloader.download(image_url)
            except (ScraperError, httpx.HTTPError, ValueError) as e:
                logger.warning(
                    "runner_image_download_failed",
                    card_id=card_id,
                    error=str(e),
                    source="runner",
                )
                continue
            await self.repository.image_downloaded(card_id)
            saved += 1

        logger.info("runner_images_downloaded", saved=saved, total=len(card_ids), source="runner")
        return saved
