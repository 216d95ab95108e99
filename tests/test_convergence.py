"""
Card Sync — Convergence Poller Tests

Covers:
- Digit extraction from counter text
- Advertised total lookup
- converge(): immediate match, scroll-driven loading, budget exhaustion,
  missing counter, session failures
"""

from __future__ import annotations

import pytest
from bs4 import BeautifulSoup

from cardsync.scraper.convergence import RetryPolicy, converge, parse_count, read_advertised_total
from cardsync.scraper.errors import BrowserSessionError, ConvergenceError, CountMismatchError
from cardsync.scraper.session import SCROLL_TO_BOTTOM_JS
from tests.conftest import FakeTab, card_boxes, list_page


def _converge(tab, policy):
    return converge(tab, counter_selector=".result_count", item_selector=".item-box", policy=policy)


# ---------------------------------------------------------------------------
# Counter parsing
# ---------------------------------------------------------------------------


class TestParseCount:
    def test_locale_formatted(self) -> None:
        """'Results: 1,234 items' → 1234."""
        assert parse_count("Results: 1,234 items") == 1234

    def test_japanese_units(self) -> None:
        assert parse_count("検索結果 40件") == 40

    def test_no_digits_is_zero(self) -> None:
        assert parse_count("該当なし") == 0

    def test_empty_and_none(self) -> None:
        assert parse_count("") == 0
        assert parse_count(None) == 0

    def test_full_width_digits_ignored(self) -> None:
        """Only ASCII digits count."""
        assert parse_count("４０件 (40)") == 40


class TestReadAdvertisedTotal:
    def test_last_counter_wins(self) -> None:
        html = '<div class="result_count">10</div><div class="result_count">25件</div>'
        assert read_advertised_total(BeautifulSoup(html, "html.parser"), ".result_count") == 25

    def test_absent_counter(self) -> None:
        assert read_advertised_total(BeautifulSoup("<div></div>", "html.parser"), ".result_count") is None


# ---------------------------------------------------------------------------
# converge()
# ---------------------------------------------------------------------------


class TestConverge:
    @pytest.mark.asyncio
    async def test_already_complete(self, fake_sleep) -> None:
        """No scrolling when the first snapshot already matches."""
        tab = FakeTab([list_page(5, card_boxes(5))])
        items = await _converge(tab, RetryPolicy(max_attempts=10, settle_seconds=10, sleep=fake_sleep))
        assert len(items) == 5
        assert tab.js_calls == []
        assert fake_sleep.calls == []

    @pytest.mark.asyncio
    async def test_scroll_until_complete(self, fake_sleep) -> None:
        """40 advertised, 20 rendered; two scroll-triggered loads reach 40."""
        tab = FakeTab(
            [
                list_page(40, card_boxes(20)),
                list_page(40, card_boxes(30)),
                list_page(40, card_boxes(40)),
            ]
        )
        items = await _converge(tab, RetryPolicy(max_attempts=10, settle_seconds=10, sleep=fake_sleep))
        assert len(items) == 40
        assert [fn for fn, _ in tab.js_calls] == [SCROLL_TO_BOTTOM_JS, SCROLL_TO_BOTTOM_JS]
        assert fake_sleep.calls == [10, 10]

    @pytest.mark.asyncio
    async def test_budget_exhausted(self, fake_sleep) -> None:
        """Never converging raises CountMismatch after exactly max_attempts measurements."""
        tab = FakeTab([list_page(40, card_boxes(20))])
        with pytest.raises(CountMismatchError) as exc_info:
            await _converge(tab, RetryPolicy(max_attempts=4, settle_seconds=1, sleep=fake_sleep))
        assert exc_info.value.expected == 40
        assert exc_info.value.actual == 20
        assert tab.content_reads == 4
        assert len(tab.js_calls) == 3
        assert fake_sleep.calls == [1, 1, 1]

    @pytest.mark.asyncio
    async def test_count_mismatch_is_convergence_error(self, fake_sleep) -> None:
        tab = FakeTab([list_page(3, card_boxes(1))])
        with pytest.raises(ConvergenceError):
            await _converge(tab, RetryPolicy(max_attempts=2, settle_seconds=0, sleep=fake_sleep))

    @pytest.mark.asyncio
    async def test_overshoot_does_not_converge(self, fake_sleep) -> None:
        """More items than advertised is still a mismatch."""
        tab = FakeTab([list_page(2, card_boxes(3))])
        with pytest.raises(CountMismatchError):
            await _converge(tab, RetryPolicy(max_attempts=2, settle_seconds=0, sleep=fake_sleep))

    @pytest.mark.asyncio
    async def test_no_counter_is_empty(self, fake_sleep) -> None:
        """A view without a counter is treated as empty, not as an error."""
        tab = FakeTab([list_page(None, card_boxes(3))])
        items = await _converge(tab, RetryPolicy(sleep=fake_sleep))
        assert items == []
        assert tab.js_calls == []

    @pytest.mark.asyncio
    async def test_counter_without_digits_means_zero(self, fake_sleep) -> None:
        html = '<html><body><div class="result_count">該当なし</div></body></html>'
        items = await _converge(FakeTab([html]), RetryPolicy(sleep=fake_sleep))
        assert items == []

    @pytest.mark.asyncio
    async def test_session_failure_becomes_convergence_error(self, fake_sleep) -> None:
        tab = FakeTab([list_page(40, card_boxes(20))])

        async def broken_scroll(fn, arg=None):
            raise BrowserSessionError("Target page, context or browser has been closed")

        tab.call_js = broken_scroll
        with pytest.raises(ConvergenceError) as exc_info:
            await _converge(tab, RetryPolicy(max_attempts=3, sleep=fake_sleep))
        assert not isinstance(exc_info.value, CountMismatchError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("attempts", [1, 2, 7])
    async def test_terminates_within_budget(self, fake_sleep, attempts: int) -> None:
        tab = FakeTab([list_page(100, card_boxes(1))])
        with pytest.raises(CountMismatchError):
            await _converge(tab, RetryPolicy(max_attempts=attempts, settle_seconds=0, sleep=fake_sleep))
        assert tab.content_reads == attempts


class TestRetryPolicy:
    def test_defaults_from_settings(self) -> None:
        policy = RetryPolicy()
        assert policy.max_attempts == 10
        assert policy.settle_seconds == 10.0

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
