"""
Card Sync — Card Model

One row per bigweb card listing. Rows are replaced wholesale on every
successful parse (last writer wins).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BOOLEAN, DECIMAL, TIMESTAMP, Index, String, false, func
from sqlalchemy.orm import Mapped, mapped_column

from cardsync.models.base import Base


class Card(Base):
    """A scraped bigweb card."""

    __tablename__ = "bigweb_cards"

    id: Mapped[str] = mapped_column(String, primary_key=True, comment="bigweb card id")
    cardset_id: Mapped[str] = mapped_column(String, nullable=False, comment="Owning cardset id")
    name: Mapped[str] = mapped_column(String, nullable=False)
    remark: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="Bracketed title remark (e.g., 'ミラー')"
    )
    number: Mapped[str | None] = mapped_column(String, nullable=True, comment="Catalog number")
    rarity: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="Rarity token, or the raw label if unrecognised"
    )
    sale_price: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    image_downloaded: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, default=False, server_default=false()
    )
    last_updated: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_bigweb_cards_cardset", "cardset_id"),
    )

    def __repr__(self) -> str:
        return f"<Card id={self.id!r} name={self.name!r} rarity={self.rarity!r}>"
