from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base


# ============================================================================
# CORE ENTITIES
# ============================================================================


class User(Base):
    """XP-bearing user profile, keyed by the identity provider's user id."""

    __tablename__ = "users"

    id = Column(String(255), primary_key=True)  # Identity provider user id
    nickname = Column(String(50), nullable=True, index=True)
    roles = Column(JSON, nullable=False, default=list)  # ["user", "moderator", "owner"]

    # Cached projection of the XP ledger; see services/xp.py
    xp = Column(Integer, nullable=False, default=0, index=True)
    level = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    photos = relationship("Photo", back_populates="owner")
    xp_transactions = relationship("XPTransaction", back_populates="user")


class Contest(Base):
    """Time-boxed photo contest. The phase is always derived, never stored."""

    __tablename__ = "contests"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    submission_start = Column(DateTime, nullable=False, index=True)
    submission_end = Column(DateTime, nullable=False)
    voting_start = Column(DateTime, nullable=False)
    voting_end = Column(DateTime, nullable=False, index=True)

    max_photos_per_user = Column(Integer, nullable=True)
    voting_mode = Column(String(10), nullable=False, default="rating")  # "rating" | "binary"

    # Lifecycle bookkeeping for the finalizer (not a phase)
    voting_announced_at = Column(DateTime, nullable=True)
    placements_awarded_at = Column(DateTime, nullable=True, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    submissions = relationship("PhotoContest", back_populates="contest")


class Photo(Base):
    """Photo owned by exactly one user."""

    __tablename__ = "photos"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    owner_id = Column(String(255), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    image_url = Column(String(1000), nullable=True)

    # Legacy single-contest link; new submissions go through photo_contests
    contest_id = Column(
        Integer, ForeignKey("contests.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    # Relationships
    owner = relationship("User", back_populates="photos")
    submissions = relationship(
        "PhotoContest", back_populates="photo", cascade="all, delete-orphan"
    )
    votes = relationship("Vote", back_populates="photo", cascade="all, delete-orphan")


class PhotoContest(Base):
    """Submission of a photo to a contest."""

    __tablename__ = "photo_contests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    photo_id = Column(
        Integer, ForeignKey("photos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    contest_id = Column(
        Integer, ForeignKey("contests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    submitted_at = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    photo = relationship("Photo", back_populates="submissions")
    contest = relationship("Contest", back_populates="submissions")

    __table_args__ = (
        UniqueConstraint("photo_id", "contest_id", name="uq_photo_contests_photo_contest"),
    )


# ============================================================================
# VOTING
# ============================================================================


class Vote(Base):
    """One vote per (voter, photo, contest); updated in place on revote."""

    __tablename__ = "votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    voter_id = Column(String(255), ForeignKey("users.id"), nullable=False, index=True)
    photo_id = Column(
        Integer, ForeignKey("photos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    contest_id = Column(Integer, ForeignKey("contests.id"), nullable=False, index=True)
    value = Column(Integer, nullable=False, default=1)  # 1-5 rating, or +1/-1 in binary contests
    voted_at = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    photo = relationship("Photo", back_populates="votes")

    __table_args__ = (
        UniqueConstraint(
            "voter_id", "photo_id", "contest_id", name="uq_votes_voter_photo_contest"
        ),
        Index("ix_votes_contest_photo", contest_id, photo_id),
    )


# ============================================================================
# XP LEDGER
# ============================================================================


class XPTransaction(Base):
    """Append-only XP ledger entry. The sum per user is the authoritative XP total."""

    __tablename__ = "xp_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), ForeignKey("users.id"), nullable=False, index=True)
    xp_amount = Column(Integer, nullable=False)  # Negative = deduction
    reason = Column(String(255), nullable=False)
    action_type = Column(String(32), nullable=False, index=True)
    category = Column(String(20), nullable=True, index=True)  # activity | placement | correction
    contest_id = Column(Integer, ForeignKey("contests.id"), nullable=True, index=True)
    photo_id = Column(
        Integer, ForeignKey("photos.id", ondelete="SET NULL"), nullable=True, index=True
    )
    awarded_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)

    # Relationships
    user = relationship("User", back_populates="xp_transactions")
    contest = relationship("Contest")

    __table_args__ = (
        Index("ix_xp_transactions_user_awarded", user_id, awarded_at),
        # Deleted ledger ids are never handed out again
        {"sqlite_autoincrement": True},
    )


# ============================================================================
# NOTIFICATIONS
# ============================================================================


class Notification(Base):
    """In-app notification created by lifecycle hooks."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), ForeignKey("users.id"), nullable=False, index=True)
    notification_type = Column(String(32), nullable=False)  # contest_ended | voting_started | level_up
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(500), nullable=True)
    contest_id = Column(Integer, ForeignKey("contests.id"), nullable=True, index=True)
    is_read = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    __table_args__ = (
        Index("ix_notifications_user_created", user_id, created_at.desc()),
    )
