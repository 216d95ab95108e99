"""
Card Sync — Sync Tracker

Per-cardset checkpoint: UNSYNCED or SYNCED. A cardset becomes SYNCED only
after a fetch returned at least one card and zero parse errors. Any failed
or partial fetch puts it back to UNSYNCED. SYNCED is a checkpoint, not a
terminal state: reset() makes the cardset eligible for a full re-fetch.

State lives in a SyncStore (the repository); the tracker holds none.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, Sequence

import structlog

logger = structlog.get_logger(__name__)


class SyncState(str, Enum):
    UNSYNCED = "unsynced"
    SYNCED = "synced"


class SyncTransitionError(Exception):
    """mark_synced() was called for an attempt that was not fully successful."""


class SyncStore(Protocol):
    async def get_sync_state(self, cardset_id: str) -> SyncState: ...

    async def set_sync_state(self, cardset_id: str, state: SyncState) -> None: ...


class SyncTracker:
    """
    State machine over cardset ids.

    Usage:
        tracker = SyncTracker(repository)
        state = await tracker.record_attempt(cardset_id, cards, errors)
    """

    def __init__(self, store: SyncStore) -> None:
        self._store = store

    async def state(self, cardset_id: str) -> SyncState:
        return await self._store.get_sync_state(cardset_id)

    async def mark_synced(
        self,
        cardset_id: str,
        successes: Sequence[object],
        errors: Sequence[Exception],
    ) -> None:
        """
        UNSYNCED → SYNCED.

        Raises:
            SyncTransitionError: the attempt had errors or produced nothing.
        """
        if errors:
            raise SyncTransitionError(
                f"cardset {cardset_id} had {len(errors)} parse errors in its last attempt"
            )
        if not successes:
            raise SyncTransitionError(f"cardset {cardset_id} produced no records")

        await self._store.set_sync_state(cardset_id, SyncState.SYNCED)
        logger.info("sync_marked_synced", cardset_id=cardset_id, records=len(successes), source="tracker")

    async def reset(self, cardset_id: str) -> None:
        """SYNCED → UNSYNCED, forcing a full re-fetch on the next run."""
        await self._store.set_sync_state(cardset_id, SyncState.UNSYNCED)
        logger.info("sync_reset", cardset_id=cardset_id, source="tracker")

    async def record_attempt(
        self,
        cardset_id: str,
        successes: Sequence[object],
        errors: Sequence[Exception],
    ) -> SyncState:
        """
        Apply the outcome of one full-batch fetch.

        Errors → UNSYNCED. Records without errors → SYNCED. An empty batch
        leaves the state unchanged.
        """
        if errors:
            await self._store.set_sync_state(cardset_id, SyncState.UNSYNCED)
            logger.warning(
                "sync_attempt_partial",
                cardset_id=cardset_id,
                records=len(successes),
                errors=len(errors),
                source="tracker",
            )
            return SyncState.UNSYNCED

        if not successes:
            state = await self._store.get_sync_state(cardset_id)
            logger.warning("sync_attempt_empty", cardset_id=cardset_id, state=state.value, source="tracker")
            return state

        await self.mark_synced(cardset_id, successes, errors)
        return SyncState.SYNCED

    async def record_failure(self, cardset_id: str, error: Exception) -> None:
        """A batch-level failure (convergence, session) leaves the cardset UNSYNCED."""
        await self._store.set_sync_state(cardset_id, SyncState.UNSYNCED)
        logger.error(
            "sync_attempt_failed",
            cardset_id=cardset_id,
            error=str(error),
            error_type=type(error).__name__,
            source="tracker",
        )
