"""contest, vote and xp schema

Revision ID: 202501100001
Revises:
Create Date: 2025-01-10 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "202501100001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("nickname", sa.String(length=50), nullable=True),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_nickname", "users", ["nickname"])
    op.create_index("ix_users_xp", "users", ["xp"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "contests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("submission_start", sa.DateTime(), nullable=False),
        sa.Column("submission_end", sa.DateTime(), nullable=False),
        sa.Column("voting_start", sa.DateTime(), nullable=False),
        sa.Column("voting_end", sa.DateTime(), nullable=False),
        sa.Column("max_photos_per_user", sa.Integer(), nullable=True),
        sa.Column("voting_mode", sa.String(length=10), nullable=False, server_default="rating"),
        sa.Column("voting_announced_at", sa.DateTime(), nullable=True),
        sa.Column("placements_awarded_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_contests_id", "contests", ["id"])
    op.create_index("ix_contests_submission_start", "contests", ["submission_start"])
    op.create_index("ix_contests_voting_end", "contests", ["voting_end"])
    op.create_index("ix_contests_placements_awarded_at", "contests", ["placements_awarded_at"])
    op.create_index("ix_contests_created_at", "contests", ["created_at"])

    op.create_table(
        "photos",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.String(length=255), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("image_url", sa.String(length=1000), nullable=True),
        sa.Column(
            "contest_id",
            sa.Integer(),
            sa.ForeignKey("contests.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_photos_id", "photos", ["id"])
    op.create_index("ix_photos_owner_id", "photos", ["owner_id"])
    op.create_index("ix_photos_contest_id", "photos", ["contest_id"])
    op.create_index("ix_photos_created_at", "photos", ["created_at"])

    op.create_table(
        "photo_contests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("photo_id", sa.Integer(), sa.ForeignKey("photos.id", ondelete="CASCADE"), nullable=False),
        sa.Column("contest_id", sa.Integer(), sa.ForeignKey("contests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("submitted_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("photo_id", "contest_id", name="uq_photo_contests_photo_contest"),
    )
    op.create_index("ix_photo_contests_photo_id", "photo_contests", ["photo_id"])
    op.create_index("ix_photo_contests_contest_id", "photo_contests", ["contest_id"])

    op.create_table(
        "votes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("voter_id", sa.String(length=255), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("photo_id", sa.Integer(), sa.ForeignKey("photos.id", ondelete="CASCADE"), nullable=False),
        sa.Column("contest_id", sa.Integer(), sa.ForeignKey("contests.id"), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("voted_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("voter_id", "photo_id", "contest_id", name="uq_votes_voter_photo_contest"),
    )
    op.create_index("ix_votes_voter_id", "votes", ["voter_id"])
    op.create_index("ix_votes_photo_id", "votes", ["photo_id"])
    op.create_index("ix_votes_contest_id", "votes", ["contest_id"])
    op.create_index("ix_votes_contest_photo", "votes", ["contest_id", "photo_id"])

    # category is added by the following revision
    op.create_table(
        "xp_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=255), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("xp_amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("action_type", sa.String(length=32), nullable=False),
        sa.Column("contest_id", sa.Integer(), sa.ForeignKey("contests.id"), nullable=True),
        sa.Column("photo_id", sa.Integer(), sa.ForeignKey("photos.id", ondelete="SET NULL"), nullable=True),
        sa.Column("awarded_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_xp_transactions_user_id", "xp_transactions", ["user_id"])
    op.create_index("ix_xp_transactions_action_type", "xp_transactions", ["action_type"])
    op.create_index("ix_xp_transactions_contest_id", "xp_transactions", ["contest_id"])
    op.create_index("ix_xp_transactions_photo_id", "xp_transactions", ["photo_id"])
    op.create_index("ix_xp_transactions_awarded_at", "xp_transactions", ["awarded_at"])
    op.create_index("ix_xp_transactions_user_awarded", "xp_transactions", ["user_id", "awarded_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=255), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("notification_type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(length=500), nullable=True),
        sa.Column("contest_id", sa.Integer(), sa.ForeignKey("contests.id"), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_contest_id", "notifications", ["contest_id"])
    op.create_index("ix_notifications_is_read", "notifications", ["is_read"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])
    op.create_index(
        "ix_notifications_user_created",
        "notifications",
        ["user_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("xp_transactions")
    op.drop_table("votes")
    op.drop_table("photo_contests")
    op.drop_table("photos")
    op.drop_table("contests")
    op.drop_table("users")
