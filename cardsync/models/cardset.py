"""
Card Sync — Cardset Model

One row per bigweb cardset. `synced` is the sync checkpoint: true only when
the last full fetch of the cardset produced no parse errors.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BOOLEAN, INTEGER, TIMESTAMP, String, false, func
from sqlalchemy.orm import Mapped, mapped_column

from cardsync.models.base import Base


class CardsetRow(Base):
    """A bigweb cardset and its sync checkpoint."""

    __tablename__ = "cardsets"

    id: Mapped[str] = mapped_column(
        String, primary_key=True, comment="bigweb cardset id (`cardsets` URL parameter)"
    )
    ref: Mapped[str] = mapped_column(
        String, unique=True, nullable=False, comment="Set code printed on the button (e.g., 'SV2a')"
    )
    name: Mapped[str] = mapped_column(String, nullable=False, comment="Set display name")
    url: Mapped[str] = mapped_column(String, nullable=False, comment="Cardset listing URL")
    result_count: Mapped[int] = mapped_column(
        INTEGER, nullable=False, default=0, comment="Advertised item count at discovery"
    )
    synced: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, default=False, server_default=false(), comment="Sync checkpoint"
    )
    last_updated: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<CardsetRow id={self.id!r} ref={self.ref!r} synced={self.synced}>"
