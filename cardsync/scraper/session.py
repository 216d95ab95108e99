"""
Card Sync — Rendering Session

Thin wrapper over a Playwright page. Each cardset fetch owns one BrowserTab;
calls on a tab are strictly sequential (navigate → wait → query → extract)
and every Playwright failure surfaces as BrowserSessionError.

Usage:
    async with open_browser() as browser:
        async with open_tab(browser) as tab:
            await tab.navigate(url)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import structlog
from playwright.async_api import Browser, ElementHandle, Page, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from cardsync.config import settings
from cardsync.scraper.errors import BrowserSessionError

logger = structlog.get_logger(__name__)

SCROLL_TO_BOTTOM_JS = "() => window.scrollTo(0, document.body.scrollHeight)"


class BrowserTab:
    """
    One Playwright page used as an isolated rendering session.

    Args:
        page: Playwright Page object.
        timeout_ms: Timeout for navigation and element waits.
    """

    def __init__(self, page: Page, timeout_ms: int | None = None) -> None:
        self.page = page
        self._timeout_ms = timeout_ms or settings.BROWSER_TIMEOUT_MS

    async def navigate(self, url: str) -> None:
        try:
            await self.page.goto(url, wait_until="domcontentloaded", timeout=self._timeout_ms)
        except PlaywrightError as e:
            raise BrowserSessionError(f"navigate to {url} failed: {e}") from e

    async def wait_until_navigated(self) -> None:
        """Wait for the network to go idle after a navigation."""
        try:
            await self.page.wait_for_load_state("networkidle", timeout=self._timeout_ms)
        except PlaywrightError as e:
            raise BrowserSessionError(f"wait_until_navigated failed: {e}") from e

    async def wait_for_element(self, selector: str) -> ElementHandle:
        try:
            element = await self.page.wait_for_selector(selector, timeout=self._timeout_ms)
        except PlaywrightError as e:
            raise BrowserSessionError(f"wait_for_element `{selector}` failed: {e}") from e
        if element is None:
            raise BrowserSessionError(f"wait_for_element `{selector}` returned nothing")
        return element

    async def get_content(self) -> str:
        try:
            return await self.page.content()
        except PlaywrightError as e:
            raise BrowserSessionError(f"get_content failed: {e}") from e

    async def inner_html(self, element: ElementHandle) -> str:
        try:
            return await element.inner_html()
        except PlaywrightError as e:
            raise BrowserSessionError(f"inner_html failed: {e}") from e

    async def inner_text(self, element: ElementHandle) -> str:
        try:
            return await element.inner_text()
        except PlaywrightError as e:
            raise BrowserSessionError(f"inner_text failed: {e}") from e

    async def call_js(self, fn: str, arg: Any = None) -> Any:
        try:
            return await self.page.evaluate(fn, arg)
        except PlaywrightError as e:
            raise BrowserSessionError(f"call_js failed: {e}") from e

    async def wait_for_js(self, fn: str, arg: Any = None, timeout_ms: int | None = None) -> bool:
        """
        Wait until `fn(arg)` is truthy in the page.

        Returns:
            False if it did not become truthy within the timeout.
        """
        try:
            await self.page.wait_for_function(fn, arg=arg, timeout=timeout_ms or self._timeout_ms)
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as e:
            raise BrowserSessionError(f"wait_for_js failed: {e}") from e
        return True

    async def get_url(self) -> str:
        return self.page.url

    async def close(self) -> None:
        try:
            await self.page.close()
        except PlaywrightError as e:
            logger.warning("browser_tab_close_failed", error=str(e), source="session")


@asynccontextmanager
async def open_browser(headless: bool | None = None) -> AsyncIterator[Browser]:
    """Launch one Chromium browser for the lifetime of a run."""
    if headless is None:
        headless = settings.BROWSER_HEADLESS
    async with async_playwright() as playwright:
        try:
            browser = await playwright.chromium.launch(headless=headless)
        except PlaywrightError as e:
            raise BrowserSessionError(f"browser launch failed: {e}") from e
        logger.info("browser_launched", headless=headless, source="session")
        try:
            yield browser
        finally:
            await browser.close()
            logger.info("browser_closed", source="session")


@asynccontextmanager
async def open_tab(browser: Browser) -> AsyncIterator[BrowserTab]:
    """Open a fresh page; closed when the block exits."""
    try:
        page = await browser.new_page()
    except PlaywrightError as e:
        raise BrowserSessionError(f"new_tab failed: {e}") from e
    tab = BrowserTab(page)
    try:
        yield tab
    finally:
        await tab.close()
