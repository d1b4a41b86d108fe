"""XP ledger writes and reconciliation."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from app import events, models
from app.errors import NotFound, ValidationError
from app.services.xp import (
    XPAction,
    XPCategory,
    award_action,
    award_xp,
    classify_action,
    deduct_xp,
    get_user_xp_stats,
    ledger_total,
    recompute_user_totals,
    timeframe_start,
)


def test_award_appends_row_and_updates_cache(db: Session, make_user):
    make_user("u1")

    change = award_xp(db, "u1", 120, "Manual grant", XPAction.VOTE)

    user = db.get(models.User, "u1")
    assert user.xp == 120
    assert user.level == 1
    assert change.old_level == 0 and change.new_level == 1
    assert change.leveled_up
    rows = db.query(models.XPTransaction).filter_by(user_id="u1").all()
    assert len(rows) == 1
    assert rows[0].xp_amount == 120
    assert rows[0].category == XPCategory.ACTIVITY.value


def test_award_action_uses_reward_table(db: Session, make_user):
    make_user("u1")
    change = award_action(db, "u1", XPAction.SUBMIT_PHOTO)
    assert change.xp_delta == 25


def test_deduction_clamps_at_zero_and_ledger_still_matches(db: Session, make_user):
    make_user("u1")
    award_xp(db, "u1", 30, "Grant", XPAction.VOTE)

    change = deduct_xp(db, "u1", 100, "Photo deleted", XPAction.PHOTO_DELETION)

    user = db.get(models.User, "u1")
    assert user.xp == 0
    assert change.xp_delta == -30
    assert ledger_total(db, "u1") == user.xp


def test_deduct_rejects_negative_amount(db: Session, make_user):
    make_user("u1")
    with pytest.raises(ValidationError):
        deduct_xp(db, "u1", -5, "Oops", XPAction.PHOTO_DELETION)


def test_unknown_action_and_missing_reason_are_rejected(db: Session, make_user):
    make_user("u1")
    with pytest.raises(ValidationError):
        award_xp(db, "u1", 5, "Grant", "NOT_AN_ACTION")
    with pytest.raises(ValidationError):
        award_xp(db, "u1", 5, "", XPAction.VOTE)
    assert db.query(models.XPTransaction).count() == 0


def test_award_for_missing_user(db: Session):
    with pytest.raises(NotFound):
        award_xp(db, "ghost", 5, "Grant", XPAction.VOTE)


def test_recompute_overwrites_drifted_cache(db: Session, make_user):
    make_user("u1")
    award_xp(db, "u1", 150, "Grant", XPAction.VOTE)
    award_xp(db, "u1", 300, "Grant", XPAction.PLACE_1ST)

    user = db.get(models.User, "u1")
    user.xp = 5
    user.level = 9
    db.commit()

    change = recompute_user_totals(db, "u1")

    db.refresh(user)
    assert user.xp == 450 == ledger_total(db, "u1")
    assert user.level == 2
    assert change.old_xp == 5


def test_level_events_fire_after_commit(db: Session, make_user):
    make_user("u1", xp=90, level=0)
    seen = []
    events.subscribe(events.USER_LEVELED_UP, lambda **payload: seen.append(payload))

    award_xp(db, "u1", 10, "Grant", XPAction.VOTE)

    assert seen == [{"user_id": "u1", "old_level": 0, "new_level": 1, "total_xp": 100}]


def test_level_up_creates_notification(db: Session, make_user):
    make_user("u1", xp=95, level=0)
    award_action(db, "u1", XPAction.VOTE)

    notes = db.query(models.Notification).filter_by(user_id="u1").all()
    assert [n.notification_type for n in notes] == ["level_up"]


def test_stats_repair_stale_level(db: Session, make_user):
    make_user("u1", xp=400, level=0)

    stats = get_user_xp_stats(db, "u1")

    assert stats["level"] == 2
    assert db.get(models.User, "u1").level == 2


def test_classification():
    assert classify_action(XPAction.TOP_25_PERCENT) == XPCategory.PLACEMENT
    assert classify_action("PARTICIPATION") == XPCategory.PLACEMENT
    assert classify_action(XPAction.PHOTO_DELETION) == XPCategory.CORRECTION
    assert classify_action(XPAction.SUBMIT_PHOTO) == XPCategory.ACTIVITY


def test_timeframe_validation():
    assert timeframe_start("all") is None
    with pytest.raises(ValidationError):
        timeframe_start("weekly")
