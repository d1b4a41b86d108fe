"""Contest administration, submissions and placement endpoints."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from app import models
from app.utils.time import utcnow


@pytest.fixture
def moderator(make_user, auth_headers):
    make_user("mod", roles=["user", "moderator"])
    return auth_headers("mod")


def _window(start_hours: int) -> dict:
    now = utcnow()
    return {
        "submission_start": (now + timedelta(hours=start_hours)).isoformat(),
        "submission_end": (now + timedelta(hours=start_hours + 24)).isoformat(),
        "voting_start": (now + timedelta(hours=start_hours + 24)).isoformat(),
        "voting_end": (now + timedelta(hours=start_hours + 48)).isoformat(),
    }


def test_create_contest_reports_derived_phase(client, moderator):
    response = client.post("/contests", headers=moderator, json={"title": "Street", **_window(-1)})

    assert response.status_code == 201
    body = response.json()
    assert body["phase"] == "submission"
    assert body["voting_mode"] == "rating"

    listed = client.get("/contests", params={"phase": "submission"}).json()
    assert [c["id"] for c in listed] == [body["id"]]


def test_create_contest_requires_moderator(client, make_user, auth_headers):
    make_user("plain")
    response = client.post("/contests", headers=auth_headers("plain"), json={"title": "X", **_window(1)})
    assert response.status_code == 403


def test_create_contest_rejects_bad_window(client, moderator):
    window = _window(1)
    window["voting_start"], window["voting_end"] = window["voting_end"], window["voting_start"]

    response = client.post("/contests", headers=moderator, json={"title": "Bad", **window})

    assert response.status_code == 400


def test_schedule_is_frozen_once_voting_starts(client, moderator, make_contest):
    contest = make_contest("voting")

    response = client.patch(
        f"/contests/{contest.id}",
        headers=moderator,
        json={"voting_end": (utcnow() + timedelta(days=3)).isoformat()},
    )
    assert response.status_code == 400

    response = client.patch(f"/contests/{contest.id}", headers=moderator, json={"title": "Renamed"})
    assert response.status_code == 200
    assert response.json()["title"] == "Renamed"


def test_delete_contest_in_use(client, moderator, make_user, make_contest, make_photo, make_vote):
    make_user("owner")
    make_user("voter")
    contest = make_contest("voting")
    photo = make_photo("owner", contest)
    make_vote("voter", photo, contest, 4)

    response = client.delete(f"/contests/{contest.id}", headers=moderator)

    assert response.status_code == 409
    assert response.json()["code"] == "contest_in_use"


def test_delete_unused_contest(client, db: Session, moderator, make_user, make_contest, make_photo):
    make_user("owner")
    contest = make_contest("upcoming")
    photo = make_photo("owner", contest, legacy=True)

    assert client.delete(f"/contests/{contest.id}", headers=moderator).status_code == 204

    db.expire_all()
    assert db.get(models.Contest, contest.id) is None
    assert db.get(models.Photo, photo.id).contest_id is None


def test_submit_and_delete_photo(client, db: Session, make_contest, auth_headers):
    contest = make_contest("submission", max_photos_per_user=1)
    headers = auth_headers("artist")

    photo = client.post("/photos", headers=headers, json={"title": "Dusk"}).json()
    second = client.post("/photos", headers=headers, json={"title": "Dawn"}).json()

    response = client.post(
        f"/photos/{photo['id']}/submissions", headers=headers, json={"contest_id": contest.id}
    )
    assert response.status_code == 201
    assert response.json()["xp_awarded"] == 25

    again = client.post(
        f"/photos/{photo['id']}/submissions", headers=headers, json={"contest_id": contest.id}
    )
    assert again.json()["code"] == "already_submitted"

    over = client.post(
        f"/photos/{second['id']}/submissions", headers=headers, json={"contest_id": contest.id}
    )
    assert over.json()["code"] == "submission_limit_reached"

    deleted = client.delete(f"/photos/{photo['id']}", headers=headers)
    assert deleted.json()["xp_deducted"] == 25
    assert db.get(models.User, "artist").xp == 0
    actions = [tx.action_type for tx in db.query(models.XPTransaction).order_by(models.XPTransaction.id)]
    assert actions == ["SUBMIT_PHOTO", "PHOTO_DELETION"]


def test_submission_outside_window(client, make_contest, auth_headers):
    contest = make_contest("voting")
    headers = auth_headers("artist")
    photo = client.post("/photos", headers=headers, json={"title": "Late"}).json()

    response = client.post(
        f"/photos/{photo['id']}/submissions", headers=headers, json={"contest_id": contest.id}
    )

    assert response.status_code == 409
    assert response.json()["code"] == "submission_closed"


def test_placements_lifecycle(client, db: Session, moderator, make_user, make_contest, make_photo, make_vote):
    for user_id in ("U1", "U2", "judge"):
        make_user(user_id)
    live = make_contest("voting")
    assert client.post(f"/contests/{live.id}/placements", headers=moderator).status_code == 409

    contest = make_contest("ended")
    winner = make_photo("U1", contest)
    runner_up = make_photo("U2", contest)
    make_vote("judge", winner, contest, 5)
    make_vote("judge", runner_up, contest, 2)

    ranking = client.get(f"/contests/{contest.id}/ranking").json()
    assert ranking["phase"] == "ended"
    assert [e["photo_id"] for e in ranking["entries"]] == [winner.id, runner_up.id]

    response = client.post(f"/contests/{contest.id}/placements", headers=moderator)
    assert response.status_code == 200
    assert response.json()["transaction_count"] == 8

    repeat = client.post(f"/contests/{contest.id}/placements", headers=moderator)
    assert repeat.status_code == 409
    assert repeat.json()["code"] == "placements_already_awarded"

    recalc = client.post(f"/contests/{contest.id}/recalculate", headers=moderator)
    assert recalc.status_code == 200
    assert recalc.json()["removed_transactions"] == 8
    assert db.get(models.User, "U1").xp == 285
