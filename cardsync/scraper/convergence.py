"""
Card Sync — Convergence Poller

Loads every item of an infinite-scroll list view. The page advertises a
total in a counter element; items materialize in batches as the page is
scrolled. The poller re-measures the item count after each scroll until it
equals the advertised total or the retry budget runs out.

Budget: `max_attempts` measurements with `max_attempts - 1` scrolls in
between, each followed by a `settle_seconds` wait. There is no cancellation
hook inside the loop; wrap the call in asyncio.wait_for() for a deadline.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Protocol

import structlog
from bs4 import BeautifulSoup, Tag

from cardsync.config import settings
from cardsync.scraper.errors import BrowserSessionError, ConvergenceError, CountMismatchError
from cardsync.scraper.session import SCROLL_TO_BOTTOM_JS

logger = structlog.get_logger(__name__)


class ListViewSession(Protocol):
    """The part of a rendering session the poller needs."""

    async def get_content(self) -> str: ...

    async def call_js(self, fn: str, arg: Any = None) -> Any: ...


class RetryPolicy:
    """
    Bounded polling policy.

    Args:
        max_attempts: Number of item-count measurements before giving up.
        settle_seconds: Wait after each "load more" before re-measuring.
        sleep: Awaitable sleep; tests pass a fake clock.
    """

    def __init__(
        self,
        max_attempts: int | None = None,
        settle_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.max_attempts = max_attempts if max_attempts is not None else settings.CONVERGE_MAX_ATTEMPTS
        self.settle_seconds = (
            settle_seconds if settle_seconds is not None else settings.CONVERGE_SETTLE_SECONDS
        )
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.sleep = sleep


def parse_count(text: str | None) -> int:
    """
    Extract a count from counter text, ignoring every non-digit.

    'Results: 1,234 items' → 1234. Text without digits → 0.
    """
    if not text:
        return 0
    digits = "".join(c for c in text if c.isascii() and c.isdigit())
    return int(digits) if digits else 0


def read_advertised_total(document: BeautifulSoup, counter_selector: str) -> int | None:
    """Advertised total from the last matching counter, None if there is none."""
    counters = document.select(counter_selector)
    if not counters:
        return None
    return parse_count(counters[-1].get_text())


async def _snapshot(session: ListViewSession) -> BeautifulSoup:
    return BeautifulSoup(await session.get_content(), "html.parser")


async def converge(
    session: ListViewSession,
    *,
    counter_selector: str,
    item_selector: str,
    policy: RetryPolicy | None = None,
) -> list[Tag]:
    """
    Scroll a list view until its item count matches the advertised total.

    Args:
        session: Tab showing the list view (already navigated).
        counter_selector: Selector of the element carrying the advertised total.
        item_selector: Selector of one item node.
        policy: Retry policy; defaults come from settings.

    Returns:
        The item nodes of the final snapshot. Empty if the view has no counter.

    Raises:
        CountMismatchError: the budget ran out before the counts matched.
        ConvergenceError: the session failed while polling.
    """
    policy = policy or RetryPolicy()

    try:
        document = await _snapshot(session)
        expected = read_advertised_total(document, counter_selector)
        if expected is None:
            logger.info("converge_no_counter", selector=counter_selector, source="convergence")
            return []

        items = document.select(item_selector)
        for attempt in range(1, policy.max_attempts + 1):
            count = len(items)
            logger.debug(
                "converge_measure",
                attempt=attempt,
                count=count,
                expected=expected,
                source="convergence",
            )
            if count == expected:
                logger.info(
                    "converge_complete",
                    attempts=attempt,
                    count=count,
                    source="convergence",
                )
                return items
            if attempt == policy.max_attempts:
                break

            await session.call_js(SCROLL_TO_BOTTOM_JS)
            await policy.sleep(policy.settle_seconds)
            items = (await _snapshot(session)).select(item_selector)
    except BrowserSessionError as e:
        raise ConvergenceError(str(e)) from e

    logger.warning(
        "converge_count_mismatch",
        expected=expected,
        actual=len(items),
        attempts=policy.max_attempts,
        source="convergence",
    )
    raise CountMismatchError(expected=expected, actual=len(items))
