"""XP stats, leaderboard and notification endpoints."""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy.orm import Session

from app import models
from app.services.xp import XPAction, award_action, award_xp


def test_stats_for_new_user(client, auth_headers):
    response = client.get("/xp/stats", headers=auth_headers("newbie"))

    assert response.status_code == 200
    assert response.json() == {
        "level": 0,
        "total_xp": 0,
        "current_level_xp": 0,
        "next_level_xp": 100,
        "xp_in_current_level": 0,
        "xp_needed_for_next_level": 100,
        "progress_percent": 0.0,
    }


def test_leaderboard_timeframes(client, db: Session, make_user):
    make_user("alice")
    make_user("bob")
    award_xp(db, "alice", 500, "Grant", XPAction.PLACE_1ST)
    award_xp(db, "bob", 300, "Grant", XPAction.PLACE_2ND)
    # Old XP counts for all-time only
    old = db.query(models.XPTransaction).filter_by(user_id="alice").one()
    old.awarded_at = old.awarded_at - timedelta(days=800)
    db.commit()

    all_time = client.get("/xp/leaderboard").json()
    assert [(e["user_id"], e["xp"], e["rank"]) for e in all_time["leaderboard"]] == [
        ("alice", 500, 1),
        ("bob", 300, 2),
    ]

    yearly = client.get("/xp/leaderboard", params={"timeframe": "yearly"}).json()
    assert [e["user_id"] for e in yearly["leaderboard"]] == ["bob"]

    assert client.get("/xp/leaderboard", params={"timeframe": "weekly"}).status_code == 422


def test_timeframe_xp_and_transactions(client, db: Session, make_user, make_contest, auth_headers):
    make_user("alice")
    contest = make_contest("ended", title="Night Sky")
    award_action(db, "alice", XPAction.PLACE_3RD, contest_id=contest.id)
    headers = auth_headers("alice")

    assert client.get("/xp/timeframe/monthly", headers=headers).json()["xp"] == 100

    transactions = client.get("/xp/transactions", headers=headers).json()
    assert transactions[0]["contest_title"] == "Night Sky"
    assert transactions[0]["category"] == "placement"


def test_rewards_info(client):
    body = client.get("/xp/rewards").json()
    assert body["rewards"]["PLACE_1ST"] == 200
    assert body["rewards"]["TOP_50_PERCENT"] == 10
    assert body["level_xp_factor"] == 100


def test_reconcile_requires_moderator(client, db: Session, make_user, auth_headers):
    make_user("mod", roles=["moderator"])
    make_user("drifted", xp=999, level=3)

    assert client.post("/xp/users/drifted/reconcile", headers=auth_headers("drifted")).status_code == 403

    response = client.post("/xp/users/drifted/reconcile", headers=auth_headers("mod"))
    assert response.status_code == 200
    assert (response.json()["old_xp"], response.json()["new_xp"], response.json()["new_level"]) == (999, 0, 0)


def test_notifications_flow(client, db: Session, make_user, auth_headers):
    make_user("alice", xp=95)
    award_action(db, "alice", XPAction.VOTE)
    headers = auth_headers("alice")

    assert client.get("/notifications/unread-count", headers=headers).json() == {"count": 1}
    notes = client.get("/notifications", headers=headers).json()
    assert notes[0]["notification_type"] == "level_up"

    marked = client.post(f"/notifications/{notes[0]['id']}/read", headers=headers).json()
    assert marked["is_read"] is True
    assert client.get("/notifications/unread-count", headers=headers).json() == {"count": 0}
