from __future__ import annotations

import pytest

from app.services.levels import level_from_xp, level_progress, xp_for_level, xp_to_next_level


@pytest.mark.parametrize("level", range(0, 40))
def test_level_threshold_round_trip(level):
    assert level_from_xp(xp_for_level(level)) == level
    if level >= 1:
        assert level_from_xp(xp_for_level(level) - 1) == level - 1


def test_known_thresholds():
    assert xp_for_level(1) == 100
    assert xp_for_level(3) == 900
    assert level_from_xp(0) == 0
    assert level_from_xp(99) == 0
    assert level_from_xp(400) == 2
    assert level_from_xp(-50) == 0


def test_level_is_monotonic():
    levels = [level_from_xp(xp) for xp in range(0, 5000, 7)]
    assert levels == sorted(levels)


def test_xp_to_next_level():
    assert xp_to_next_level(2, 450) == 450


def test_progress_breakdown():
    progress = level_progress(250)
    assert progress["level"] == 1
    assert progress["current_level_xp"] == 100
    assert progress["next_level_xp"] == 400
    assert progress["xp_in_current_level"] == 150
    assert progress["xp_needed_for_next_level"] == 150
    assert progress["progress_percent"] == 50.0
