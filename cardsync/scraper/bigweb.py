"""
Card Sync — bigweb Pokémon Scraper

Site-level fetches built from the navigator, the convergence poller and the
record parser:

- fetch_cardsets():   click through every cardset button on the list page
- fetch_cards(url):   scroll one cardset page to completeness and parse it
- fetch_card_image_url(id): read the card image src from the card viewer

Every fetch opens its own tab, so callers may run fetches for different
cardsets concurrently.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup
from playwright.async_api import Browser

from cardsync.config import settings
from cardsync.scraper import BigwebCard, Cardset
from cardsync.scraper.convergence import RetryPolicy, converge, parse_count
from cardsync.scraper.errors import NavError, ParseError, ScraperError
from cardsync.scraper.navigator import for_each_selectable
from cardsync.scraper.parser import ButtonTitle, CardsetURL, parse_items
from cardsync.scraper.session import BrowserTab, open_tab

logger = structlog.get_logger(__name__)

CARDSET_LIST_SELECTOR = "app-cardset-list"
CARDSET_BUTTON_SELECTOR = "button.cardset-list-name"
RESULT_COUNT_SELECTOR = ".result_count"
PRODUCT_LIST_SELECTOR = ".product-list"
ITEM_BOX_SELECTOR = ".item-box"
CARD_IMAGE_SELECTOR = "div.card_view_one-image-item-box img"

TabFactory = Callable[[], AbstractAsyncContextManager[BrowserTab]]


class BigwebScraper:
    """
    Scrapes bigweb's Pokémon catalogue.

    Usage:
        async with open_browser() as browser:
            scraper = BigwebScraper(browser)
            cardsets = await scraper.fetch_cardsets()

    Args:
        browser: Playwright browser; one new page is opened per fetch.
        policy: Convergence retry policy for card lists.
        tab_factory: Overrides how tabs are opened (tests pass fakes).
    """

    def __init__(
        self,
        browser: Browser | None = None,
        policy: RetryPolicy | None = None,
        tab_factory: TabFactory | None = None,
    ) -> None:
        if tab_factory is None:
            if browser is None:
                raise ValueError("BigwebScraper needs a browser or a tab_factory")
            tab_factory = lambda: open_tab(browser)  # noqa: E731
        self._tab_factory = tab_factory
        self.policy = policy or RetryPolicy()

    async def fetch_cardsets(self) -> list[Cardset | NavError]:
        """
        Discover every cardset from the Pokémon list page.

        Returns:
            One Cardset or NavError per cardset button, in page order.

        Raises:
            BrowserSessionError: the list page itself could not be loaded.
        """
        async with self._tab_factory() as tab:
            await tab.navigate(settings.BIGWEB_POKEMON_LIST_URL)
            await tab.wait_until_navigated()

            async def on_select(index: int, label: str) -> Cardset | None:
                button_title = ButtonTitle.parse(label)
                if button_title is None:
                    return None

                result_count_elem = await tab.wait_for_element(RESULT_COUNT_SELECTOR)
                result_count = parse_count(await tab.inner_text(result_count_elem))

                url = await tab.get_url()
                cardset_url = CardsetURL.parse(url)
                if cardset_url is None:
                    raise NavError(index=index, label=label, message=f"no cardset id in {url}")

                return Cardset(
                    id=cardset_url.cardset_id,
                    url=cardset_url.url,
                    ref=button_title.ref,
                    name=button_title.set_name,
                    result_count=result_count,
                )

            cardsets = await for_each_selectable(
                tab,
                container_selector=CARDSET_LIST_SELECTOR,
                control_selector=CARDSET_BUTTON_SELECTOR,
                indicator_selector=RESULT_COUNT_SELECTOR,
                on_select=on_select,
            )

        logger.info("bigweb_fetch_cardsets_complete", count=len(cardsets), source="bigweb")
        return cardsets

    async def fetch_cards(self, cardset_url: CardsetURL) -> list[BigwebCard | ParseError]:
        """
        Fetch every card of one cardset.

        Returns:
            One outcome per card item: BigwebCard or ParseError.

        Raises:
            BrowserSessionError: navigation or the product list wait failed.
            ConvergenceError: the list never reached its advertised size.
        """
        logger.info("bigweb_fetch_cards", cardset_id=cardset_url.cardset_id, source="bigweb")

        async with self._tab_factory() as tab:
            await tab.navigate(cardset_url.origin_url)
            await tab.wait_until_navigated()
            await tab.wait_for_element(PRODUCT_LIST_SELECTOR)
            item_boxes = await converge(
                tab,
                counter_selector=RESULT_COUNT_SELECTOR,
                item_selector=ITEM_BOX_SELECTOR,
                policy=self.policy,
            )

        outcomes = parse_items(item_boxes, cardset_url)
        logger.info(
            "bigweb_fetch_cards_complete",
            cardset_id=cardset_url.cardset_id,
            items=len(item_boxes),
            outcomes=len(outcomes),
            source="bigweb",
        )
        return outcomes

    async def fetch_card_image_url(self, card_id: str) -> str:
        """
        Resolve the image URL shown in a card's viewer page.

        Raises:
            BrowserSessionError: the viewer page or image never rendered.
            ScraperError: the image element carries no src.
        """
        url = f"{settings.BIGWEB_BASE_URL}/ja/products/pokemon/cardViewer/{card_id}"
        async with self._tab_factory() as tab:
            await tab.navigate(url)
            await tab.wait_until_navigated()
            await tab.wait_for_element(CARD_IMAGE_SELECTOR)
            document = BeautifulSoup(await tab.get_content(), "html.parser")

        image = document.select_one(CARD_IMAGE_SELECTOR)
        src = image.get("src") if image is not None else None
        if not src:
            raise ScraperError(f"card {card_id} has no image src")
        return urljoin(url, src)
