"""
Card Sync — Record Parser

Pure functions mapping one bigweb `.item-box` fragment to one BigwebCard or
a ParseError. No I/O: nodes are BeautifulSoup tags taken from a page
snapshot the caller already holds.

Field sources inside an item box:
- `.images-item-title a`                   → card id (href), name + remark (text)
- `.grid-item-comment`                     → catalog number (optional)
- `.images-item-title span:nth-of-type(2)` → rarity label (optional)
- `.sales-price`                           → sale price (optional)
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import NamedTuple
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import structlog
from bs4 import Tag

from cardsync.config import settings
from cardsync.scraper import BigwebCard
from cardsync.scraper.errors import MalformedTitleError, MissingFieldError, ParseError
from cardsync.utils.rarity import Rarity, UnknownRarity, classify_rarity

logger = structlog.get_logger(__name__)

TITLE_LINK_SELECTOR = ".images-item-title a"
NUMBER_SELECTOR = ".grid-item-comment"
RARITY_SELECTOR = ".images-item-title span:nth-of-type(2)"
PRICE_SELECTOR = ".sales-price"

# Remarks that mark supplies and sealed product listed among the cards.
NON_CARD_REMARKS = ("サプライ", "スリーブ", "BOX", "ボックス", "パック", "デッキケース")

_BRACKET_PAIRS = {"(": ")", "（": "）", "【": "】", "[": "]"}

_LINK_TITLE_RE = re.compile(
    r"^(?P<name>[^()（）【】\[\]]+?)\s*"
    r"(?:(?P<open>[(（【\[])(?P<remark>[^()（）【】\[\]]*)(?P<close>[)）】\]]))?$"
)

_BUTTON_TITLE_RE = re.compile(
    r"^(?P<name>.+?)\s*[\[【(（]\s*(?P<ref>[A-Za-z0-9][A-Za-z0-9\-]*)\s*[\]】)）]$"
)

_PRICE_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------


class CardsetURL(NamedTuple):
    """Listing URL of one cardset; the cardset id is its `cardsets` parameter."""
    url: str
    cardset_id: str

    @classmethod
    def parse(cls, url: str) -> CardsetURL | None:
        values = parse_qs(urlparse(url).query).get("cardsets")
        if not values or not values[0].strip():
            return None
        return cls(url=url, cardset_id=values[0].strip())

    @classmethod
    def from_cardset_id(cls, cardset_id: str) -> CardsetURL:
        base = urlparse(settings.BIGWEB_POKEMON_LIST_URL)
        url = urlunparse(base._replace(query=urlencode({"cardsets": cardset_id})))
        return cls(url=url, cardset_id=cardset_id)

    @property
    def origin_url(self) -> str:
        return self.url


def card_id_from_href(href: str | None) -> str | None:
    """Card id is the last path segment of the card link."""
    if not href:
        return None
    segments = [s for s in urlparse(href).path.split("/") if s]
    return segments[-1] if segments else None


# ---------------------------------------------------------------------------
# Titles
# ---------------------------------------------------------------------------


class LinkTitle(NamedTuple):
    """Card link text: '<name> <optional bracket-remark>'."""
    name: str
    remark: str | None

    @classmethod
    def parse(cls, title: str) -> LinkTitle:
        """
        Parse a decoded, trimmed card title.

        Raises:
            MalformedTitleError: empty title, unbalanced or repeated brackets.
        """
        match = _LINK_TITLE_RE.match(title)
        if match is None:
            raise MalformedTitleError(title)

        name = match.group("name").strip()
        if not name:
            raise MalformedTitleError(title)

        remark: str | None = None
        if match.group("open"):
            if _BRACKET_PAIRS[match.group("open")] != match.group("close"):
                raise MalformedTitleError(title)
            remark = match.group("remark").strip() or None
        return cls(name=name, remark=remark)

    @property
    def is_card(self) -> bool:
        if self.remark is None:
            return True
        remark = self.remark.upper()
        return not any(marker in remark for marker in NON_CARD_REMARKS)


class ButtonTitle(NamedTuple):
    """Cardset button label: '<set name> [<code>]'."""
    set_name: str
    ref: str

    @classmethod
    def parse(cls, label: str) -> ButtonTitle | None:
        """Returns None for buttons that are not cardset buttons."""
        match = _BUTTON_TITLE_RE.match(label.strip())
        if match is None:
            return None
        return cls(set_name=match.group("name").strip(), ref=match.group("ref"))


# ---------------------------------------------------------------------------
# Optional fields
# ---------------------------------------------------------------------------


def parse_price(text: str | None) -> Decimal | None:
    """Parse a price like '¥1,280' or '1,280円'. Unparseable → None."""
    if not text:
        return None
    match = _PRICE_RE.search(text)
    if match is None:
        return None
    try:
        return Decimal(match.group().replace(",", ""))
    except InvalidOperation:
        return None


class BigwebCardBuilder:
    """Collects fields for one card; build() checks the required ones."""

    REQUIRED = ("id", "cardset_id", "name")

    def __init__(self, cardset_id: str | None = None) -> None:
        self.id: str | None = None
        self.cardset_id: str | None = cardset_id
        self.name: str | None = None
        self.remark: str | None = None
        self.number: str | None = None
        self.rarity: Rarity | UnknownRarity | None = None
        self.sale_price: Decimal | None = None

    def build(self) -> BigwebCard:
        """
        Raises:
            MissingFieldError: if id, cardset_id or name is unset.
        """
        for field in self.REQUIRED:
            if not getattr(self, field):
                raise MissingFieldError(field)
        return BigwebCard(
            id=self.id,
            cardset_id=self.cardset_id,
            name=self.name,
            remark=self.remark,
            number=self.number,
            rarity=self.rarity,
            sale_price=self.sale_price,
        )


# ---------------------------------------------------------------------------
# Item parsing
# ---------------------------------------------------------------------------


def _text(node: Tag, selector: str) -> str | None:
    element = node.select_one(selector)
    if element is None:
        return None
    return element.get_text().strip()


def parse_item(node: Tag, cardset_url: CardsetURL) -> BigwebCard | ParseError | None:
    """
    Parse one item box.

    Returns:
        BigwebCard on success, the ParseError on a malformed or incomplete
        record, None when the item is not a card (supplies, sealed product).
    """
    builder = BigwebCardBuilder(cardset_id=cardset_url.cardset_id)

    anchor = node.select_one(TITLE_LINK_SELECTOR)
    if anchor is not None:
        title = anchor.get_text().strip()
        try:
            link_title = LinkTitle.parse(title)
        except MalformedTitleError as e:
            return e
        if not link_title.is_card:
            logger.debug("parser_item_not_a_card", title=title, source="parser")
            return None
        builder.id = card_id_from_href(anchor.get("href"))
        builder.name = link_title.name
        builder.remark = link_title.remark

    builder.number = _text(node, NUMBER_SELECTOR) or None

    rarity_label = _text(node, RARITY_SELECTOR)
    builder.rarity = classify_rarity(rarity_label) if rarity_label is not None else None

    builder.sale_price = parse_price(_text(node, PRICE_SELECTOR))

    try:
        return builder.build()
    except MissingFieldError as e:
        return e


def parse_items(nodes: list[Tag], cardset_url: CardsetURL) -> list[BigwebCard | ParseError]:
    """Parse every item box of one view; non-card items produce no outcome."""
    outcomes: list[BigwebCard | ParseError] = []
    for node in nodes:
        outcome = parse_item(node, cardset_url)
        if outcome is not None:
            outcomes.append(outcome)
    return outcomes
