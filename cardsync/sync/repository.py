"""
Card Sync — Repository (persistence collaborator)

Every call runs in its own session and commits before returning. Upserts use
INSERT ... ON CONFLICT DO UPDATE keyed by card id / cardset id, so concurrent
per-cardset fetches can write side by side (last writer wins).

Works against PostgreSQL (asyncpg) and SQLite (aiosqlite, tests).
"""

from __future__ import annotations

import structlog
from sqlalchemy import DECIMAL, bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardsync.scraper import BigwebCard, Cardset
from cardsync.sync.tracker import SyncState
from cardsync.utils.rarity import rarity_to_db

logger = structlog.get_logger(__name__)


class Repository:
    """
    Usage:
        repository = Repository(session_factory)
        await repository.upsert_record(card)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    # -----------------------------------------------------------------------
    # Records
    # -----------------------------------------------------------------------

    async def upsert_record(self, card: BigwebCard) -> None:
        stmt = text("""
            INSERT INTO bigweb_cards (
                id, cardset_id, name, remark, number, rarity, sale_price,
                image_downloaded, last_updated
            ) VALUES (
                :id, :cardset_id, :name, :remark, :number, :rarity, :sale_price,
                :image_downloaded, CURRENT_TIMESTAMP
            )
            ON CONFLICT (id) DO UPDATE SET
                cardset_id = EXCLUDED.cardset_id,
                name = EXCLUDED.name,
                remark = EXCLUDED.remark,
                number = EXCLUDED.number,
                rarity = EXCLUDED.rarity,
                sale_price = EXCLUDED.sale_price,
                last_updated = EXCLUDED.last_updated
        """).bindparams(bindparam("sale_price", type_=DECIMAL(10, 2)))

        async with self.session_factory() as session:
            await session.execute(
                stmt,
                {
                    "id": card.id,
                    "cardset_id": card.cardset_id,
                    "name": card.name,
                    "remark": card.remark,
                    "number": card.number,
                    "rarity": rarity_to_db(card.rarity),
                    "sale_price": card.sale_price,
                    "image_downloaded": False,
                },
            )
            await session.commit()

        logger.debug("repository_card_upserted", card_id=card.id, source="repository")

    async def fetch_card_ids_without_image(self) -> list[str]:
        async with self.session_factory() as session:
            result = await session.execute(
                text("SELECT id FROM bigweb_cards WHERE image_downloaded = :flag ORDER BY id"),
                {"flag": False},
            )
            return [row[0] for row in result.fetchall()]

    async def image_downloaded(self, card_id: str) -> None:
        async with self.session_factory() as session:
            await session.execute(
                text("UPDATE bigweb_cards SET image_downloaded = :flag WHERE id = :id"),
                {"flag": True, "id": card_id},
            )
            await session.commit()

    # -----------------------------------------------------------------------
    # Collections
    # -----------------------------------------------------------------------

    async def upsert_collection(self, cardset: Cardset) -> None:
        """
        Insert or refresh a cardset. The sync checkpoint is left untouched.

        Raises:
            IntegrityError: the ref is already stored under another cardset id.
        """
        stmt = text("""
            INSERT INTO cardsets (id, ref, name, url, result_count, synced, last_updated)
            VALUES (:id, :ref, :name, :url, :result_count, :synced, CURRENT_TIMESTAMP)
            ON CONFLICT (id) DO UPDATE SET
                ref = EXCLUDED.ref,
                name = EXCLUDED.name,
                url = EXCLUDED.url,
                result_count = EXCLUDED.result_count,
                last_updated = EXCLUDED.last_updated
        """)

        async with self.session_factory() as session:
            await session.execute(
                stmt,
                {
                    "id": cardset.id,
                    "ref": cardset.ref,
                    "name": cardset.name,
                    "url": cardset.url,
                    "result_count": cardset.result_count,
                    "synced": False,
                },
            )
            await session.commit()

        logger.debug("repository_cardset_upserted", cardset_id=cardset.id, ref=cardset.ref, source="repository")

    async def get_cardset_id(self, ref: str) -> str | None:
        async with self.session_factory() as session:
            result = await session.execute(
                text("SELECT id FROM cardsets WHERE ref = :ref"),
                {"ref": ref},
            )
            row = result.first()
            return row[0] if row else None

    async def get_cardset_ids(self, synced: bool | None = None) -> list[str]:
        """All cardset ids, or only those whose checkpoint equals `synced`."""
        async with self.session_factory() as session:
            if synced is None:
                result = await session.execute(text("SELECT id FROM cardsets ORDER BY id"))
            else:
                result = await session.execute(
                    text("SELECT id FROM cardsets WHERE synced = :synced ORDER BY id"),
                    {"synced": synced},
                )
            return [row[0] for row in result.fetchall()]

    # -----------------------------------------------------------------------
    # SyncStore
    # -----------------------------------------------------------------------

    async def get_sync_state(self, cardset_id: str) -> SyncState:
        async with self.session_factory() as session:
            result = await session.execute(
                text("SELECT synced FROM cardsets WHERE id = :id"),
                {"id": cardset_id},
            )
            row = result.first()
        if row is None or not row[0]:
            return SyncState.UNSYNCED
        return SyncState.SYNCED

    async def set_sync_state(self, cardset_id: str, state: SyncState) -> None:
        async with self.session_factory() as session:
            result = await session.execute(
                text("UPDATE cardsets SET synced = :synced WHERE id = :id"),
                {"synced": state == SyncState.SYNCED, "id": cardset_id},
            )
            await session.commit()

        if result.rowcount == 0:
            logger.warning(
                "repository_sync_state_unknown_cardset",
                cardset_id=cardset_id,
                state=state.value,
                source="repository",
            )
