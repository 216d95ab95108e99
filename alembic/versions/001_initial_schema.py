"""Initial schema — cardsets, bigweb_cards

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- cardsets (sync checkpoint per cardset) ---
    op.create_table(
        "cardsets",
        sa.Column("id", sa.String(), nullable=False, primary_key=True, comment="bigweb cardset id"),
        sa.Column("ref", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("url", sa.String(), nullable=False),
        sa.Column("result_count", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("synced", sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        sa.Column(
            "last_updated",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # --- bigweb_cards ---
    op.create_table(
        "bigweb_cards",
        sa.Column("id", sa.String(), nullable=False, primary_key=True, comment="bigweb card id"),
        sa.Column("cardset_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("remark", sa.String(), nullable=True),
        sa.Column("number", sa.String(), nullable=True),
        sa.Column("rarity", sa.String(), nullable=True, comment="Token or raw label if unknown"),
        sa.Column("sale_price", sa.DECIMAL(10, 2), nullable=True),
        sa.Column("image_downloaded", sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        sa.Column(
            "last_updated",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_bigweb_cards_cardset", "bigweb_cards", ["cardset_id"])


def downgrade() -> None:
    op.drop_index("ix_bigweb_cards_cardset", table_name="bigweb_cards")
    op.drop_table("bigweb_cards")
    op.drop_table("cardsets")
