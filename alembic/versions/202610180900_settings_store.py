"""settings store

Revision ID: 202610180900
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "202610180900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "spending_tiers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("color", sa.String(length=9)),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
    )

    op.create_table(
        "spending_tier_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "tier_id",
            sa.Integer(),
            sa.ForeignKey("spending_tiers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("category", sa.String(length=200), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("tier_id", "category", name="uq_tier_category"),
    )
    op.create_index(
        "ix_tier_categories_tier_position",
        "spending_tier_categories",
        ["tier_id", "position"],
    )

    op.create_table(
        "preferences",
        sa.Column("key", sa.String(length=100), primary_key=True),
        sa.Column("value", sa.String(length=500), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
    )


def downgrade() -> None:
    op.drop_table("preferences")
    op.drop_index(
        "ix_tier_categories_tier_position", table_name="spending_tier_categories"
    )
    op.drop_table("spending_tier_categories")
    op.drop_table("spending_tiers")
