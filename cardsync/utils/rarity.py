"""
Card Sync — Rarity Vocabulary

Closed set of Pokémon card rarity tokens plus the lookup used by the
record parser. bigweb prints rarities as bare codes ("SAR"), bracketed
codes ("【SAR】", "(SAR)") or long English names ("Special Art Rare (SAR)").

A label that matches nothing in the vocabulary is kept verbatim as an
UnknownRarity so it can be inspected and added to the table later.
"""

from __future__ import annotations

import re
from enum import Enum

import structlog
from pydantic import BaseModel, ConfigDict

logger = structlog.get_logger(__name__)


class Rarity(str, Enum):
    """Known rarity tokens."""
    UR = "UR"
    SSR = "SSR"
    ACE = "ACE"
    HR = "HR"
    SR = "SR"
    SAR = "SAR"
    CSR = "CSR"
    AR = "AR"
    CHR = "CHR"
    S = "S"
    A = "A"
    H = "H"
    K = "K"
    PR = "PR"
    RRR = "RRR"
    RR = "RR"
    R = "R"
    U = "U"
    C = "C"
    TR = "TR"


class UnknownRarity(BaseModel):
    """A rarity label outside the known vocabulary, preserved as printed."""

    model_config = ConfigDict(frozen=True)

    label: str

    def __str__(self) -> str:
        return self.label


# ---------------------------------------------------------------------------
# Long-form names
# ---------------------------------------------------------------------------

_LONG_NAMES: dict[str, Rarity] = {
    "Ultra Rare (UR)": Rarity.UR,
    "Shiny Super Rare (SSR)": Rarity.SSR,
    "ACE SPEC Rare (ACE)": Rarity.ACE,
    "Hyper Rare (HR)": Rarity.HR,
    "Super Rare (SR)": Rarity.SR,
    "Special Art Rare (SAR)": Rarity.SAR,
    "Character Super Rare (CSR)": Rarity.CSR,
    "Art Rare (AR)": Rarity.AR,
    "Character Rare (CHR)": Rarity.CHR,
    "Shiny (S)": Rarity.S,
    "Amazing Rare": Rarity.A,
    "Rare Holo": Rarity.H,
    "Radiant Rare (K)": Rarity.K,
    "Promo": Rarity.PR,
    "Triple Rare (RRR)": Rarity.RRR,
    "Double Rare (RR)": Rarity.RR,
    "Rare (R)": Rarity.R,
    "Uncommon (U)": Rarity.U,
    "Common (C)": Rarity.C,
    "Trainer Rare (TR)": Rarity.TR,
}

_BRACKETS = re.compile(r"^[\[\(（【《]\s*|\s*[\]\)）】》]$")


def lookup_rarity(label: str) -> Rarity | None:
    """
    Look up a label in the closed vocabulary.

    Returns:
        The Rarity token, or None if the label is not recognised.
    """
    text = label.strip()
    if text in _LONG_NAMES:
        return _LONG_NAMES[text]

    token = _BRACKETS.sub("", text).strip().upper()
    try:
        return Rarity(token)
    except ValueError:
        return None


def classify_rarity(label: str) -> Rarity | UnknownRarity | None:
    """
    Classify a raw rarity label.

    Empty labels yield None. Known tokens yield a Rarity and do not keep the
    raw text. Anything else yields UnknownRarity carrying the original label.
    """
    if not label or not label.strip():
        return None

    rarity = lookup_rarity(label)
    if rarity is not None:
        return rarity

    logger.debug("rarity_unknown_label", label=label, source="rarity")
    return UnknownRarity(label=label)


def rarity_from_db(value: str | None) -> Rarity | UnknownRarity | None:
    """Rebuild a rarity from its stored column value."""
    if value is None:
        return None
    try:
        return Rarity(value)
    except ValueError:
        return UnknownRarity(label=value)


def rarity_to_db(rarity: Rarity | UnknownRarity | None) -> str | None:
    """Column value for a rarity: the token, or the raw label if unknown."""
    if rarity is None:
        return None
    if isinstance(rarity, Rarity):
        return rarity.value
    return rarity.label
