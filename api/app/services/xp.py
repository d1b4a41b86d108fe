"""
XP ledger.

``xp_transactions`` is the source of truth for a user's experience. The
``users.xp`` / ``users.level`` columns are a projection refreshed on every
write and rebuilt on demand by ``recompute_user_totals``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from .. import events, models
from ..errors import NotFound, ValidationError
from ..utils.time import utcnow
from .levels import level_from_xp, level_progress

logger = logging.getLogger(__name__)


class XPAction(str, Enum):
    SUBMIT_PHOTO = "SUBMIT_PHOTO"
    VOTE = "VOTE"
    PLACE_1ST = "PLACE_1ST"
    PLACE_2ND = "PLACE_2ND"
    PLACE_3RD = "PLACE_3RD"
    TOP_10_PERCENT = "TOP_10_PERCENT"
    TOP_25_PERCENT = "TOP_25_PERCENT"
    TOP_50_PERCENT = "TOP_50_PERCENT"
    PHOTO_DELETION = "PHOTO_DELETION"
    PARTICIPATION = "PARTICIPATION"


class XPCategory(str, Enum):
    ACTIVITY = "activity"
    PLACEMENT = "placement"
    CORRECTION = "correction"


XP_REWARDS: dict[XPAction, int] = {
    XPAction.SUBMIT_PHOTO: 25,
    XPAction.VOTE: 5,
    XPAction.PLACE_1ST: 200,
    XPAction.PLACE_2ND: 150,
    XPAction.PLACE_3RD: 100,
    XPAction.TOP_10_PERCENT: 50,
    XPAction.TOP_25_PERCENT: 25,
    XPAction.TOP_50_PERCENT: 10,
}

# Contest-outcome actions. PARTICIPATION is only found on historical rows.
PLACEMENT_ACTIONS: frozenset[XPAction] = frozenset(
    {
        XPAction.PLACE_1ST,
        XPAction.PLACE_2ND,
        XPAction.PLACE_3RD,
        XPAction.TOP_10_PERCENT,
        XPAction.TOP_25_PERCENT,
        XPAction.TOP_50_PERCENT,
        XPAction.PARTICIPATION,
    }
)

# Reason phrases used by rows written before transactions were categorized.
LEGACY_PLACEMENT_REASONS: tuple[str, ...] = (
    "1st place",
    "2nd place",
    "3rd place",
    "Top 10%",
    "Top 25%",
    "Top 50%",
    "Contest participation",
)

ACTION_REASONS: dict[XPAction, str] = {
    XPAction.SUBMIT_PHOTO: "Photo submission",
    XPAction.VOTE: "Vote cast",
    XPAction.PLACE_1ST: "1st place finish",
    XPAction.PLACE_2ND: "2nd place finish",
    XPAction.PLACE_3RD: "3rd place finish",
    XPAction.TOP_10_PERCENT: "Top 10% finish",
    XPAction.TOP_25_PERCENT: "Top 25% finish",
    XPAction.TOP_50_PERCENT: "Top 50% finish",
    XPAction.PHOTO_DELETION: "Photo deleted",
    XPAction.PARTICIPATION: "Contest participation",
}

TIMEFRAMES = ("all", "monthly", "yearly")


def classify_action(action: XPAction | str) -> XPCategory:
    action = XPAction(action)
    if action in PLACEMENT_ACTIONS:
        return XPCategory.PLACEMENT
    if action is XPAction.PHOTO_DELETION:
        return XPCategory.CORRECTION
    return XPCategory.ACTIVITY


@dataclass
class XPChange:
    """Outcome of a single ledger write or reconciliation."""

    user_id: str
    old_xp: int
    new_xp: int
    old_level: int
    new_level: int
    transaction_id: int | None = None
    reason: str = ""

    @property
    def xp_delta(self) -> int:
        return self.new_xp - self.old_xp

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level

    @property
    def leveled_down(self) -> bool:
        return self.new_level < self.old_level


def _lock_user(db: Session, user_id: str) -> models.User:
    user = (
        db.query(models.User)
        .filter(models.User.id == user_id)
        .with_for_update()
        .first()
    )
    if not user:
        raise NotFound(f"User {user_id} not found")
    return user


def publish_level_change(change: XPChange) -> None:
    """Fire level hooks for a committed change."""
    if change.leveled_up:
        events.emit(
            events.USER_LEVELED_UP,
            user_id=change.user_id,
            old_level=change.old_level,
            new_level=change.new_level,
            total_xp=change.new_xp,
        )
    elif change.leveled_down:
        events.emit(
            events.USER_LEVELED_DOWN,
            user_id=change.user_id,
            old_level=change.old_level,
            new_level=change.new_level,
            total_xp=change.new_xp,
        )


def award_xp(
    db: Session,
    user_id: str,
    amount: int,
    reason: str,
    action_type: XPAction | str,
    contest_id: int | None = None,
    photo_id: int | None = None,
    *,
    commit: bool = True,
) -> XPChange:
    """
    Append a ledger row and refresh the user's cached XP/level in one unit.

    The cached total is clamped at zero. The stored ``xp_amount`` is the delta
    actually applied, so the ledger sum keeps matching the cached total even
    when a deduction hits the floor.

    With ``commit=False`` the caller owns the transaction and must call
    ``publish_level_change`` after committing.
    """
    try:
        action = XPAction(action_type)
    except ValueError:
        raise ValidationError(f"Unknown XP action type: {action_type}")
    if not reason:
        raise ValidationError("XP transactions require a reason")

    user = _lock_user(db, user_id)

    old_xp = user.xp or 0
    old_level = user.level or 0
    new_xp = max(0, old_xp + amount)
    new_level = level_from_xp(new_xp)

    transaction = models.XPTransaction(
        user_id=user_id,
        xp_amount=new_xp - old_xp,
        reason=reason,
        action_type=action.value,
        category=classify_action(action).value,
        contest_id=contest_id,
        photo_id=photo_id,
        awarded_at=utcnow(),
    )
    db.add(transaction)
    user.xp = new_xp
    user.level = new_level

    if commit:
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
    else:
        db.flush()

    change = XPChange(
        user_id=user_id,
        old_xp=old_xp,
        new_xp=new_xp,
        old_level=old_level,
        new_level=new_level,
        transaction_id=transaction.id,
        reason=reason,
    )
    logger.info(
        f"XP {action.value} {amount:+d} for user {user_id}: {old_xp} -> {new_xp} "
        f"(level {old_level} -> {new_level})"
    )

    if commit:
        publish_level_change(change)
    return change


def deduct_xp(
    db: Session,
    user_id: str,
    amount: int,
    reason: str,
    action_type: XPAction | str,
    contest_id: int | None = None,
    photo_id: int | None = None,
    *,
    commit: bool = True,
) -> XPChange:
    """Deduct ``amount`` (a positive number) from the user; never below zero."""
    if amount < 0:
        raise ValidationError("Deduction amount must be positive")
    return award_xp(
        db,
        user_id,
        -amount,
        reason,
        action_type,
        contest_id=contest_id,
        photo_id=photo_id,
        commit=commit,
    )


def ledger_total(db: Session, user_id: str) -> int:
    total = (
        db.query(func.coalesce(func.sum(models.XPTransaction.xp_amount), 0))
        .filter(models.XPTransaction.user_id == user_id)
        .scalar()
    )
    return int(total or 0)


def recompute_user_totals(db: Session, user_id: str, *, commit: bool = True) -> XPChange:
    """Overwrite the cached XP/level with the sum of the user's full ledger."""
    user = _lock_user(db, user_id)
    total = ledger_total(db, user_id)
    if total < 0:
        logger.warning(f"Ledger for user {user_id} sums to {total}; clamping cached XP to 0")

    old_xp = user.xp or 0
    old_level = user.level or 0
    new_xp = max(0, total)
    new_level = level_from_xp(new_xp)
    user.xp = new_xp
    user.level = new_level

    if commit:
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
    else:
        db.flush()

    change = XPChange(
        user_id=user_id,
        old_xp=old_xp,
        new_xp=new_xp,
        old_level=old_level,
        new_level=new_level,
        reason="Ledger reconciliation",
    )
    if change.xp_delta or old_level != new_level:
        logger.info(
            f"Reconciled user {user_id}: {old_xp} -> {new_xp} XP, level {old_level} -> {new_level}"
        )
    if commit:
        publish_level_change(change)
    return change


# ============================================================================
# CONVENIENCE AWARDS
# ============================================================================


def award_action(
    db: Session,
    user_id: str,
    action: XPAction,
    contest_id: int | None = None,
    photo_id: int | None = None,
    *,
    commit: bool = True,
) -> XPChange:
    """Award the table amount for ``action`` with its standard reason."""
    return award_xp(
        db,
        user_id,
        XP_REWARDS[action],
        ACTION_REASONS[action],
        action,
        contest_id=contest_id,
        photo_id=photo_id,
        commit=commit,
    )


# ============================================================================
# READ MODELS
# ============================================================================


def get_user_xp_stats(db: Session, user_id: str) -> dict:
    """XP progress for a user. Repairs a stale cached level as a side effect."""
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFound("User not found")

    stats = level_progress(user.xp or 0)
    if user.level != stats["level"]:
        logger.info(f"Repairing stale level for user {user_id}: {user.level} -> {stats['level']}")
        user.level = stats["level"]
        db.commit()
    return stats


def timeframe_start(timeframe: str, now: datetime | None = None) -> datetime | None:
    if timeframe not in TIMEFRAMES:
        raise ValidationError("Invalid timeframe. Use 'all', 'monthly', or 'yearly'")
    now = now or utcnow()
    if timeframe == "monthly":
        return datetime(now.year, now.month, 1)
    if timeframe == "yearly":
        return datetime(now.year, 1, 1)
    return None


def get_user_timeframe_xp(db: Session, user_id: str, timeframe: str = "all") -> int:
    start = timeframe_start(timeframe)
    if start is None:
        user = db.query(models.User).filter(models.User.id == user_id).first()
        return user.xp if user else 0

    total = (
        db.query(func.coalesce(func.sum(models.XPTransaction.xp_amount), 0))
        .filter(
            models.XPTransaction.user_id == user_id,
            models.XPTransaction.awarded_at >= start,
        )
        .scalar()
    )
    return int(total or 0)


def get_recent_transactions(db: Session, user_id: str, limit: int = 20) -> list[models.XPTransaction]:
    return (
        db.query(models.XPTransaction)
        .options(joinedload(models.XPTransaction.contest))
        .filter(models.XPTransaction.user_id == user_id)
        .order_by(models.XPTransaction.awarded_at.desc(), models.XPTransaction.id.desc())
        .limit(limit)
        .all()
    )
