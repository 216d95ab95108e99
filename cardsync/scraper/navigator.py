"""
Card Sync — Selection-Driven Navigator

Walks a list of clickable controls (e.g. cardset buttons) that switch the
view through client-side routing. The controls are snapshotted once, before
the first click: clicking may re-render the list, so indices and labels are
never recomputed afterwards.

A control with an href is followed directly; a control without one is
clicked by position inside the list page (the walk returns to the list page
first if an href led away from it). One failing control is recorded as a
NavError for its index and the walk continues.

The indicator element of the previous view stays in the DOM after a click,
so its presence alone says nothing about the new view. After each selection
the walk waits for the URL to change and then for the indicator text to
refresh. A URL that never changes is accepted only if no earlier control
already produced it (the list page may open on the first control's view).
"""

from __future__ import annotations

from typing import Awaitable, Callable, NamedTuple, TypeVar
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup

from cardsync.config import settings
from cardsync.scraper.errors import BrowserSessionError, NavError, ScraperError
from cardsync.scraper.session import BrowserTab

logger = structlog.get_logger(__name__)

T = TypeVar("T")

CLICK_NTH_JS = "([selector, index]) => document.querySelectorAll(selector)[index].click()"
URL_CHANGED_JS = "(url) => window.location.href !== url"
INDICATOR_TEXT_JS = (
    "(selector) => { const els = document.querySelectorAll(selector);"
    " return els.length ? els[els.length - 1].innerText : null; }"
)
INDICATOR_CHANGED_JS = (
    "([selector, text]) => { const els = document.querySelectorAll(selector);"
    " return els.length > 0 && els[els.length - 1].innerText !== text; }"
)


class Selectable(NamedTuple):
    """One control as captured in the initial snapshot."""
    index: int
    label: str
    href: str | None


async def snapshot_selectables(
    tab: BrowserTab,
    *,
    container_selector: str,
    control_selector: str,
) -> list[Selectable]:
    """Capture order, labels and hrefs of the controls currently rendered."""
    container = await tab.wait_for_element(container_selector)
    fragment = BeautifulSoup(await tab.inner_html(container), "html.parser")
    return [
        Selectable(index=i, label=control.get_text(" ", strip=True), href=control.get("href") or None)
        for i, control in enumerate(fragment.select(control_selector))
    ]


async def _select(tab: BrowserTab, control: Selectable, control_selector: str) -> None:
    if control.href:
        await tab.navigate(urljoin(await tab.get_url(), control.href))
        await tab.wait_until_navigated()
    else:
        await tab.call_js(CLICK_NTH_JS, [control_selector, control.index])


async def _return_to_list(tab: BrowserTab, list_url: str, container_selector: str) -> None:
    await tab.navigate(list_url)
    await tab.wait_until_navigated()
    await tab.wait_for_element(container_selector)


async def for_each_selectable(
    tab: BrowserTab,
    *,
    container_selector: str,
    control_selector: str,
    indicator_selector: str,
    on_select: Callable[[int, str], Awaitable[T | None]],
) -> list[T | NavError]:
    """
    Select every control of the initial snapshot in turn.

    Args:
        tab: Tab showing the page with the controls.
        container_selector: Element wrapping the control list.
        control_selector: Selector of one control, relative to the page.
        indicator_selector: Element whose text reflects the selected view.
        on_select: Called with (index, label) once the view has switched.
            Returning None skips the control (not a card-bearing control);
            raising a ScraperError records a NavError for that index.

    Returns:
        One entry per non-skipped control, in snapshot order: the value from
        on_select, or the NavError that control produced.

    Raises:
        BrowserSessionError: the container itself never rendered.
    """
    list_url = await tab.get_url()
    controls = await snapshot_selectables(
        tab,
        container_selector=container_selector,
        control_selector=control_selector,
    )
    logger.info("navigator_snapshot", controls=len(controls), source="navigator")

    results: list[T | NavError] = []
    claimed_urls: set[str] = set()
    on_list_page = True
    for control in controls:
        try:
            if not control.href and not on_list_page:
                await _return_to_list(tab, list_url, container_selector)
                on_list_page = True
            before_url = await tab.get_url()
            before_text = await tab.call_js(INDICATOR_TEXT_JS, indicator_selector)
            await _select(tab, control, control_selector)
            if control.href:
                on_list_page = False
        except BrowserSessionError as e:
            results.append(_nav_error(control, f"select failed: {e}"))
            continue

        try:
            url_changed = await tab.wait_for_js(URL_CHANGED_JS, before_url)
            await tab.wait_for_element(indicator_selector)
        except BrowserSessionError as e:
            results.append(_nav_error(control, f"wait_for_element `{indicator_selector}` but {e}"))
            continue

        current_url = await tab.get_url()
        if not url_changed and current_url in claimed_urls:
            results.append(_nav_error(control, f"view did not change from {current_url}"))
            continue

        try:
            if url_changed and before_text is not None:
                refreshed = await tab.wait_for_js(
                    INDICATOR_CHANGED_JS,
                    [indicator_selector, before_text],
                    timeout_ms=settings.NAV_INDICATOR_SETTLE_MS,
                )
                if not refreshed:
                    logger.debug(
                        "navigator_indicator_unchanged",
                        index=control.index,
                        text=before_text,
                        source="navigator",
                    )
        except BrowserSessionError as e:
            results.append(_nav_error(control, f"indicator `{indicator_selector}` never settled: {e}"))
            continue
        claimed_urls.add(current_url)

        try:
            value = await on_select(control.index, control.label)
        except NavError as e:
            logger.error("navigator_control_failed", index=e.index, error=e.message, source="navigator")
            results.append(e)
            continue
        except ScraperError as e:
            results.append(_nav_error(control, str(e)))
            continue

        if value is None:
            logger.debug(
                "navigator_control_skipped",
                index=control.index,
                label=control.label,
                source="navigator",
            )
            continue
        results.append(value)

    return results


def _nav_error(control: Selectable, message: str) -> NavError:
    error = NavError(index=control.index, label=control.label, message=message)
    logger.error(
        "navigator_control_failed",
        index=control.index,
        label=control.label,
        error=message,
        source="navigator",
    )
    return error
