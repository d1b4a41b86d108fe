"""Voting over HTTP, including the end-to-end rating scenario."""

from __future__ import annotations

from sqlalchemy.orm import Session

from app import models


def test_vote_then_revote_updates_in_place(client, db: Session, make_user, make_contest, make_photo, auth_headers):
    make_user("U3")
    contest = make_contest("voting")
    p1 = make_photo("U3", contest)
    # U2 has never been seen; the first request creates the profile
    headers = auth_headers("U2")

    response = client.post(
        "/votes", headers=headers, json={"photo_id": p1.id, "contest_id": contest.id, "value": 4}
    )
    assert response.status_code == 201
    body = response.json()
    assert body["created"] is True
    assert body["xp_awarded"] == 5

    aggregate = client.get(f"/photos/{p1.id}/votes", params={"contest_id": contest.id}).json()
    assert (aggregate["count"], aggregate["sum"], aggregate["average"]) == (1, 4, 4)

    response = client.post(
        "/votes", headers=headers, json={"photo_id": p1.id, "contest_id": contest.id, "value": 2}
    )
    assert response.status_code == 200
    assert response.json()["created"] is False
    assert response.json()["vote"]["value"] == 2

    aggregate = client.get(f"/photos/{p1.id}/votes", params={"contest_id": contest.id}).json()
    assert (aggregate["count"], aggregate["sum"], aggregate["average"]) == (1, 2, 2)

    assert db.get(models.User, "U2").xp == 5


def test_vote_requires_auth(client, make_user, make_contest, make_photo):
    make_user("U3")
    contest = make_contest("voting")
    photo = make_photo("U3", contest)

    response = client.post("/votes", json={"photo_id": photo.id, "contest_id": contest.id, "value": 4})

    assert response.status_code == 401


def test_self_vote_is_forbidden(client, make_user, make_contest, make_photo, auth_headers):
    make_user("U3")
    contest = make_contest("voting")
    photo = make_photo("U3", contest)

    response = client.post(
        "/votes",
        headers=auth_headers("U3"),
        json={"photo_id": photo.id, "contest_id": contest.id, "value": 5},
    )

    assert response.status_code == 403
    assert response.json()["code"] == "forbidden_self_vote"


def test_vote_on_closed_contest_reports_phase(client, make_user, make_contest, make_photo, auth_headers):
    make_user("U3")
    contest = make_contest("processing")
    photo = make_photo("U3", contest)

    response = client.post(
        "/votes",
        headers=auth_headers("U2"),
        json={"photo_id": photo.id, "contest_id": contest.id, "value": 3},
    )

    assert response.status_code == 409
    assert response.json()["code"] == "voting_closed"
    assert response.json()["phase"] == "processing"


def test_out_of_range_vote(client, make_user, make_contest, make_photo, auth_headers):
    make_user("U3")
    contest = make_contest("voting")
    photo = make_photo("U3", contest)

    response = client.post(
        "/votes",
        headers=auth_headers("U2"),
        json={"photo_id": photo.id, "contest_id": contest.id, "value": 7},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_binary_toggle_endpoint(client, make_user, make_contest, make_photo, auth_headers):
    make_user("U3")
    contest = make_contest("voting", voting_mode="binary")
    photo = make_photo("U3", contest)
    headers = auth_headers("U2")
    payload = {"photo_id": photo.id, "contest_id": contest.id, "direction": 1}

    assert client.post("/votes/toggle", headers=headers, json=payload).json()["action"] == "created"
    assert client.post("/votes/toggle", headers=headers, json=payload).json()["action"] == "removed"


def test_my_votes(client, make_user, make_contest, make_photo, auth_headers):
    make_user("U3")
    contest = make_contest("voting")
    photo = make_photo("U3", contest)
    headers = auth_headers("U2")
    client.post("/votes", headers=headers, json={"photo_id": photo.id, "contest_id": contest.id, "value": 5})

    votes = client.get("/users/me/votes", headers=headers).json()

    assert [(v["photo_id"], v["value"]) for v in votes] == [(photo.id, 5)]
