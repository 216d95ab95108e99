"""
Card Sync — Sync Tracker Tests

Covers:
- SYNCED only after a non-empty attempt with zero errors
- Partial and failed attempts → UNSYNCED
- Empty attempts leave the checkpoint alone
- reset() makes a SYNCED cardset eligible again
"""

from __future__ import annotations

import pytest

from cardsync.scraper.errors import CountMismatchError, MissingFieldError
from cardsync.sync.tracker import SyncState, SyncTracker, SyncTransitionError


class MemoryStore:
    """In-memory SyncStore."""

    def __init__(self, states: dict[str, SyncState] | None = None) -> None:
        self.states = dict(states or {})
        self.writes: list[tuple[str, SyncState]] = []

    async def get_sync_state(self, cardset_id: str) -> SyncState:
        return self.states.get(cardset_id, SyncState.UNSYNCED)

    async def set_sync_state(self, cardset_id: str, state: SyncState) -> None:
        self.writes.append((cardset_id, state))
        self.states[cardset_id] = state


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def tracker(store: MemoryStore) -> SyncTracker:
    return SyncTracker(store)


class TestRecordAttempt:
    @pytest.mark.asyncio
    async def test_clean_attempt_syncs(self, tracker: SyncTracker) -> None:
        assert await tracker.record_attempt("7615", ["a", "b"], []) is SyncState.SYNCED
        assert await tracker.state("7615") is SyncState.SYNCED

    @pytest.mark.asyncio
    async def test_partial_attempt_stays_unsynced(self, tracker: SyncTracker) -> None:
        """38 records and 2 parse errors never mark the cardset synced."""
        records = [f"card{i}" for i in range(38)]
        errors = [MissingFieldError("id"), MissingFieldError("name")]
        assert await tracker.record_attempt("7615", records, errors) is SyncState.UNSYNCED
        assert await tracker.state("7615") is SyncState.UNSYNCED

    @pytest.mark.asyncio
    async def test_partial_attempt_demotes_synced(self) -> None:
        store = MemoryStore({"7615": SyncState.SYNCED})
        tracker = SyncTracker(store)
        await tracker.record_attempt("7615", ["a"], [MissingFieldError("id")])
        assert store.states["7615"] is SyncState.UNSYNCED

    @pytest.mark.asyncio
    async def test_empty_attempt_leaves_state(self) -> None:
        store = MemoryStore({"1": SyncState.SYNCED})
        tracker = SyncTracker(store)
        assert await tracker.record_attempt("1", [], []) is SyncState.SYNCED
        assert await tracker.record_attempt("2", [], []) is SyncState.UNSYNCED
        assert store.writes == []


class TestTransitions:
    @pytest.mark.asyncio
    async def test_mark_synced_rejects_errors(self, tracker: SyncTracker, store: MemoryStore) -> None:
        with pytest.raises(SyncTransitionError):
            await tracker.mark_synced("1", ["a"], [MissingFieldError("id")])
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_mark_synced_rejects_empty(self, tracker: SyncTracker) -> None:
        with pytest.raises(SyncTransitionError):
            await tracker.mark_synced("1", [], [])

    @pytest.mark.asyncio
    async def test_reset(self) -> None:
        store = MemoryStore({"1": SyncState.SYNCED})
        tracker = SyncTracker(store)
        await tracker.reset("1")
        assert await tracker.state("1") is SyncState.UNSYNCED

    @pytest.mark.asyncio
    async def test_record_failure(self) -> None:
        store = MemoryStore({"1": SyncState.SYNCED})
        tracker = SyncTracker(store)
        await tracker.record_failure("1", CountMismatchError(expected=40, actual=20))
        assert store.states["1"] is SyncState.UNSYNCED

    @pytest.mark.asyncio
    async def test_resync_cycle(self, tracker: SyncTracker) -> None:
        await tracker.record_attempt("1", ["a"], [])
        await tracker.reset("1")
        assert await tracker.record_attempt("1", ["a", "b"], []) is SyncState.SYNCED
