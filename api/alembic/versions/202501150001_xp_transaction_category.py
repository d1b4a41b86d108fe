"""add xp_transactions.category and backfill it

Rows are classified from action_type. Rows whose action type is not a
placement kind but whose reason reads like a placement award (written by
older releases) are classified as placement too.

Revision ID: 202501150001
Revises: 202501100001
Create Date: 2025-01-15 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "202501150001"
down_revision = "202501100001"
branch_labels = None
depends_on = None

PLACEMENT_ACTIONS = (
    "PLACE_1ST",
    "PLACE_2ND",
    "PLACE_3RD",
    "TOP_10_PERCENT",
    "TOP_25_PERCENT",
    "TOP_50_PERCENT",
    "PARTICIPATION",
)

# Frozen copy of the phrases older releases wrote into ``reason``.
PLACEMENT_REASON_PATTERNS = (
    "%1st place%",
    "%2nd place%",
    "%3rd place%",
    "%top 10%",
    "%top 25%",
    "%top 50%",
    "%contest participation%",
)


def upgrade() -> None:
    with op.batch_alter_table("xp_transactions", table_kwargs={"sqlite_autoincrement": True}) as batch:
        batch.add_column(sa.Column("category", sa.String(length=20), nullable=True))
        batch.create_index("ix_xp_transactions_category", ["category"])

    xp = sa.table(
        "xp_transactions",
        sa.column("action_type", sa.String),
        sa.column("reason", sa.String),
        sa.column("category", sa.String),
    )

    op.execute(
        xp.update()
        .where(xp.c.action_type.in_(PLACEMENT_ACTIONS))
        .values(category="placement")
    )
    op.execute(
        xp.update()
        .where(xp.c.action_type == "PHOTO_DELETION")
        .values(category="correction")
    )
    op.execute(
        xp.update()
        .where(
            xp.c.category.is_(None),
            sa.or_(*[sa.func.lower(xp.c.reason).like(p) for p in PLACEMENT_REASON_PATTERNS]),
        )
        .values(category="placement")
    )
    op.execute(
        xp.update().where(xp.c.category.is_(None)).values(category="activity")
    )


def downgrade() -> None:
    with op.batch_alter_table("xp_transactions", table_kwargs={"sqlite_autoincrement": True}) as batch:
        batch.drop_index("ix_xp_transactions_category")
        batch.drop_column("category")
