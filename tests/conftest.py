"""
Card Sync — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- In-memory SQLite database (aiosqlite) with the ORM tables
- FakeTab: a scripted stand-in for a Playwright-backed BrowserTab
- HTML builders for bigweb item boxes and cardset pages
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cardsync.models.base import Base
from cardsync.scraper.errors import BrowserSessionError
from cardsync.scraper.navigator import (
    CLICK_NTH_JS,
    INDICATOR_CHANGED_JS,
    INDICATOR_TEXT_JS,
    URL_CHANGED_JS,
)
from cardsync.sync.repository import Repository


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    In-memory SQLite session factory.

    aiosqlite pools a single connection for ":memory:", so every session
    from the factory sees the same tables.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def repository(session_factory) -> Repository:
    return Repository(session_factory)


# ---------------------------------------------------------------------------
# HTML builders
# ---------------------------------------------------------------------------


def item_box(
    card_id: str | None,
    title: str | None,
    number: str | None = None,
    rarity: str | None = None,
    price: str | None = None,
) -> str:
    """One bigweb `.item-box`. None leaves the matching sub-element out."""
    parts = ['<div class="item-box">', '<div class="images-item-title">']
    if title is not None:
        href = f"/ja/products/pokemon/cardViewer/{card_id}" if card_id else ""
        parts.append(f'<a href="{href}">{title}</a>')
    parts.append("<span>ポケモン</span>")
    if rarity is not None:
        parts.append(f"<span>{rarity}</span>")
    parts.append("</div>")
    if number is not None:
        parts.append(f'<div class="grid-item-comment">{number}</div>')
    if price is not None:
        parts.append(f'<div class="sales-price">{price}</div>')
    parts.append("</div>")
    return "".join(parts)


def card_boxes(count: int, start: int = 0) -> list[str]:
    return [
        item_box(f"{1000 + i}", f"カード{i}(ミラー)", f"{i:03d}/165", "SAR", "¥1,280")
        for i in range(start, start + count)
    ]


def list_page(total: int | None, boxes: list[str]) -> str:
    """A cardset page; total=None leaves the result counter out."""
    counter = f'<div class="result_count">検索結果 {total:,}件</div>' if total is not None else ""
    return (
        "<html><body>"
        f'<div class="product-list">{counter}{"".join(boxes)}</div>'
        "</body></html>"
    )


# ---------------------------------------------------------------------------
# Fake rendering session
# ---------------------------------------------------------------------------


class FakeTab:
    """
    Scripted BrowserTab.

    - get_content() returns `contents` one by one, then repeats the last one.
    - Clicking control i (via CLICK_NTH_JS) moves the URL to `?cardsets={base + i}`.
    - wait_for_element(indicator) raises after a click on an index in
      `failing_indices`.
    - A click on an index in `stuck_indices` leaves the URL as it was.
    - The indicator text refreshes after a selection unless
      `indicator_refreshes` is False.
    """

    def __init__(
        self,
        contents: list[str] | None = None,
        *,
        container_html: str = "",
        indicator_selector: str = ".result_count",
        failing_indices: tuple[int, ...] = (),
        stuck_indices: tuple[int, ...] = (),
        indicator_refreshes: bool = True,
        result_text: str = "検索結果 40件",
        cardset_id_base: int = 7000,
    ) -> None:
        self.contents = list(contents or ["<html></html>"])
        self.container_html = container_html
        self.indicator_selector = indicator_selector
        self.failing_indices = set(failing_indices)
        self.stuck_indices = set(stuck_indices)
        self.indicator_refreshes = indicator_refreshes
        self.result_text = result_text
        self.cardset_id_base = cardset_id_base
        self.url = "about:blank"
        self.clicked: int | None = None
        self.js_calls: list[tuple[str, Any]] = []
        self.js_waits: list[tuple[str, Any, int | None]] = []
        self.navigations: list[str] = []
        self.waited: list[str] = []
        self.content_reads = 0
        self.closed = False

    async def navigate(self, url: str) -> None:
        self.navigations.append(url)
        self.url = url

    async def wait_until_navigated(self) -> None:
        return None

    async def wait_for_element(self, selector: str) -> str:
        self.waited.append(selector)
        if selector == self.indicator_selector and self.clicked in self.failing_indices:
            raise BrowserSessionError(f"Timeout 30000ms exceeded waiting for {selector}")
        return selector

    async def inner_html(self, element: Any) -> str:
        return self.container_html

    async def inner_text(self, element: Any) -> str:
        return self.result_text

    async def get_content(self) -> str:
        self.content_reads += 1
        if len(self.contents) > 1:
            return self.contents.pop(0)
        return self.contents[0]

    async def call_js(self, fn: str, arg: Any = None) -> Any:
        self.js_calls.append((fn, arg))
        if fn == INDICATOR_TEXT_JS:
            return self.result_text
        if fn == CLICK_NTH_JS:
            index = arg[1]
            self.clicked = index
            if index not in self.stuck_indices:
                self.url = (
                    "https://www.bigweb.co.jp/ja/products/pokemon/list"
                    f"?cardsets={self.cardset_id_base + index}"
                )
        return None

    async def wait_for_js(self, fn: str, arg: Any = None, timeout_ms: int | None = None) -> bool:
        self.js_waits.append((fn, arg, timeout_ms))
        if fn == URL_CHANGED_JS:
            return self.url != arg
        if fn == INDICATOR_CHANGED_JS:
            return self.indicator_refreshes
        return True

    async def get_url(self) -> str:
        return self.url

    async def close(self) -> None:
        self.closed = True


def tab_factory_for(*tabs: FakeTab):
    """Tab factory handing out the given tabs in order (the last one repeats)."""
    queue = list(tabs)

    @asynccontextmanager
    async def factory():
        tab = queue.pop(0) if len(queue) > 1 else queue[0]
        try:
            yield tab
        finally:
            await tab.close()

    return factory


class FakeSleep:
    """Fake clock for RetryPolicy: records waits instead of sleeping."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()
