from __future__ import annotations

import pytest

from app import events


def test_emit_reaches_subscribers_with_payload():
    received = []
    events.subscribe(events.VOTING_STARTED, lambda **payload: received.append(payload))

    delivered = events.emit(events.VOTING_STARTED, contest_id=1, title="T", participant_ids=[])

    assert received[-1] == {"contest_id": 1, "title": "T", "participant_ids": []}
    assert delivered >= 1


def test_failing_handler_does_not_propagate():
    calls = []

    def broken(**payload):
        raise RuntimeError("smtp down")

    def healthy(**payload):
        calls.append(payload)

    events.clear_subscribers()
    events.subscribe(events.USER_LEVELED_DOWN, broken)
    events.subscribe(events.USER_LEVELED_DOWN, healthy)

    delivered = events.emit(events.USER_LEVELED_DOWN, user_id="u1", old_level=2, new_level=1, total_xp=150)

    assert delivered == 1
    assert calls == [{"user_id": "u1", "old_level": 2, "new_level": 1, "total_xp": 150}]


def test_subscribe_is_idempotent_and_validated():
    def handler(**payload):
        pass

    events.clear_subscribers()
    events.subscribe(events.CONTEST_ENDED, handler)
    events.subscribe(events.CONTEST_ENDED, handler)
    assert events.emit(events.CONTEST_ENDED, contest_id=1, participant_ids=[], winners=[]) == 1

    events.unsubscribe(events.CONTEST_ENDED, handler)
    assert events.emit(events.CONTEST_ENDED, contest_id=1, participant_ids=[], winners=[]) == 0

    with pytest.raises(ValueError):
        events.subscribe("photo_liked", handler)
