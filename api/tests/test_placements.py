"""Placement XP awarding."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from app import events, models
from app.errors import ContestNotEnded, PlacementsAlreadyAwarded
from app.services import placements
from app.services.placements import award_contest_placements, placement_rewards
from app.services.xp import XPAction
from app.tasks import finalize_contests_sync


@pytest.fixture
def five_entry_contest(make_user, make_contest, make_photo, make_vote):
    """U1 wins outright; U2..U5 trail with strictly decreasing scores."""
    for user_id in ("U1", "U2", "U3", "U4", "U5", "judge1", "judge2"):
        make_user(user_id)
    contest = make_contest("ended")
    photos = {owner: make_photo(owner, contest) for owner in ("U1", "U2", "U3", "U4", "U5")}
    for owner, score in (("U1", 5), ("U2", 4), ("U3", 3), ("U4", 2), ("U5", 1)):
        make_vote("judge1", photos[owner], contest, score)
        make_vote("judge2", photos[owner], contest, score)
    return contest, photos


def _placement_rows(db: Session, user_id: str) -> list[models.XPTransaction]:
    return (
        db.query(models.XPTransaction)
        .filter_by(user_id=user_id)
        .order_by(models.XPTransaction.id)
        .all()
    )


def test_winner_rewards_stack(db: Session, five_entry_contest):
    contest, photos = five_entry_contest

    award_contest_placements(db, contest.id)

    rows = _placement_rows(db, "U1")
    assert [r.action_type for r in rows] == [
        "PLACE_1ST",
        "TOP_10_PERCENT",
        "TOP_25_PERCENT",
        "TOP_50_PERCENT",
    ]
    assert sum(r.xp_amount for r in rows) == 200 + 50 + 25 + 10
    assert all(r.contest_id == contest.id and r.photo_id == photos["U1"].id for r in rows)
    assert all(r.category == "placement" for r in rows)
    assert db.get(models.User, "U1").xp == 285
    assert db.get(models.User, "U1").level == 1


def test_field_of_five(db: Session, five_entry_contest):
    contest, _ = five_entry_contest

    report = award_contest_placements(db, contest.id)

    totals = {award.entry.owner_id: award.xp_awarded for award in report.awards}
    assert totals == {"U1": 285, "U2": 235, "U3": 185, "U4": 0, "U5": 0}
    assert report.participants == 5
    assert report.transaction_count == 12
    assert db.get(models.Contest, contest.id).placements_awarded_at is not None


def test_second_run_is_refused(db: Session, five_entry_contest):
    contest, _ = five_entry_contest
    award_contest_placements(db, contest.id)

    with pytest.raises(PlacementsAlreadyAwarded):
        award_contest_placements(db, contest.id)

    assert len(_placement_rows(db, "U1")) == 4


def test_empty_contest_is_a_no_op(db: Session, make_contest):
    contest = make_contest("ended")

    report = award_contest_placements(db, contest.id)

    assert report.participants == 0
    assert report.awards == []
    assert db.query(models.XPTransaction).count() == 0


def test_contest_ended_hook_notifies_participants(db: Session, five_entry_contest):
    contest, _ = five_entry_contest
    payloads = []
    events.subscribe(events.CONTEST_ENDED, lambda **payload: payloads.append(payload))

    award_contest_placements(db, contest.id)

    assert payloads[0]["contest_id"] == contest.id
    assert payloads[0]["participant_ids"] == ["U1", "U2", "U3", "U4", "U5"]
    assert payloads[0]["title"] == contest.title
    ended = db.query(models.Notification).filter_by(notification_type="contest_ended").all()
    assert len(ended) == 5
    assert ended[0].message == f'The contest "{contest.title}" has ended. Check out the results!'


def test_interrupted_award_is_retried_cleanly(db: Session, five_entry_contest, monkeypatch):
    contest, _ = five_entry_contest
    contest_id = contest.id
    original = placements.award_action

    def flaky(db, user_id, action, **kwargs):
        if user_id == "U2":
            raise RuntimeError("connection reset")
        return original(db, user_id, action, **kwargs)

    monkeypatch.setattr(placements, "award_action", flaky)
    first = finalize_contests_sync(db)

    assert first["failed"] == [contest_id]
    db.expire_all()
    assert db.query(models.XPTransaction).count() == 0
    assert db.get(models.User, "U1").xp == 0
    assert db.get(models.Contest, contest_id).placements_awarded_at is None

    monkeypatch.setattr(placements, "award_action", original)
    second = finalize_contests_sync(db)

    assert second["finalized"] == [contest_id]
    db.expire_all()
    firsts = db.query(models.XPTransaction).filter_by(user_id="U1", action_type="PLACE_1ST")
    assert firsts.count() == 1
    assert db.get(models.User, "U1").xp == 285


def test_only_ended_contests_are_awarded(db: Session, make_user, make_contest, make_photo):
    make_user("U1")
    contest = make_contest("voting")
    make_photo("U1", contest)

    with pytest.raises(ContestNotEnded):
        award_contest_placements(db, contest.id)

    db.expire_all()
    assert db.get(models.Contest, contest.id).placements_awarded_at is None


@pytest.mark.parametrize(
    "placement, total, expected",
    [
        (1, 2, [XPAction.PLACE_1ST, XPAction.TOP_10_PERCENT, XPAction.TOP_25_PERCENT, XPAction.TOP_50_PERCENT]),
        (3, 3, [XPAction.PLACE_3RD, XPAction.TOP_10_PERCENT, XPAction.TOP_25_PERCENT, XPAction.TOP_50_PERCENT]),
        (4, 40, [XPAction.TOP_10_PERCENT, XPAction.TOP_25_PERCENT, XPAction.TOP_50_PERCENT]),
        (4, 20, [XPAction.TOP_25_PERCENT, XPAction.TOP_50_PERCENT]),
        (5, 10, [XPAction.TOP_50_PERCENT]),
        (6, 10, []),
    ],
)
def test_placement_rewards(placement, total, expected):
    assert placement_rewards(placement, total) == expected
