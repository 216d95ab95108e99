"""
Models package — export all SQLAlchemy models.
"""

from cardsync.models.base import Base
from cardsync.models.card import Card
from cardsync.models.cardset import CardsetRow

__all__ = ["Base", "Card", "CardsetRow"]
