"""Card Sync — Scraper Layer"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from cardsync.utils.rarity import Rarity, UnknownRarity


class BigwebCard(BaseModel):
    """One card listing scraped from a bigweb cardset page."""

    model_config = ConfigDict(frozen=True)

    id: str
    cardset_id: str
    name: str
    remark: str | None = None
    number: str | None = None
    rarity: Rarity | UnknownRarity | None = None
    sale_price: Decimal | None = None


class Cardset(BaseModel):
    """A bigweb cardset discovered from the list page's cardset buttons."""

    model_config = ConfigDict(frozen=True)

    id: str  # `cardsets` query parameter of the listing URL
    url: str
    ref: str  # set code printed on the button, e.g. "SV2a"
    name: str
    result_count: int = 0
