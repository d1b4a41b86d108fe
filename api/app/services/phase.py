"""Contest phase resolution.

The phase of a contest is a pure function of its four instants and the
current time. It is never persisted; every read calls ``resolve_phase``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Protocol

from ..errors import ValidationError
from ..utils.time import as_naive_utc, utcnow


class ContestPhase(str, Enum):
    UPCOMING = "upcoming"
    SUBMISSION = "submission"
    PROCESSING = "processing"
    VOTING = "voting"
    ENDED = "ended"


# Lifecycle order; phases only ever advance through this sequence.
PHASE_ORDER: tuple[ContestPhase, ...] = (
    ContestPhase.UPCOMING,
    ContestPhase.SUBMISSION,
    ContestPhase.PROCESSING,
    ContestPhase.VOTING,
    ContestPhase.ENDED,
)


class ContestWindow(Protocol):
    submission_start: datetime
    submission_end: datetime
    voting_start: datetime
    voting_end: datetime


def resolve_phase(contest: ContestWindow, now: datetime | None = None) -> ContestPhase:
    """
    Derive the phase of a contest at ``now`` (defaults to the current time).

    Boundaries are inclusive on both ends of the submission and voting windows;
    ``processing`` is the open gap between them and is empty when
    ``submission_end == voting_start``.
    """
    now = as_naive_utc(now) if now is not None else utcnow()

    if now < as_naive_utc(contest.submission_start):
        return ContestPhase.UPCOMING
    if now <= as_naive_utc(contest.submission_end):
        return ContestPhase.SUBMISSION
    if now < as_naive_utc(contest.voting_start):
        return ContestPhase.PROCESSING
    if now <= as_naive_utc(contest.voting_end):
        return ContestPhase.VOTING
    return ContestPhase.ENDED


def validate_contest_window(
    submission_start: datetime,
    submission_end: datetime,
    voting_start: datetime,
    voting_end: datetime,
) -> None:
    """Require submission_start < submission_end <= voting_start < voting_end."""
    submission_start, submission_end, voting_start, voting_end = (
        as_naive_utc(value)
        for value in (submission_start, submission_end, voting_start, voting_end)
    )
    if not submission_start < submission_end:
        raise ValidationError("Submission end must be after submission start")
    if not submission_end <= voting_start:
        raise ValidationError("Voting cannot start before submissions close")
    if not voting_start < voting_end:
        raise ValidationError("Voting end must be after voting start")
