"""
Vote ledger.

At most one vote row exists per (voter, photo, contest). The unique
constraint is what guarantees it: inserts are attempted first and a
uniqueness violation falls back to updating the row that won the race.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import (
    ForbiddenSelfVote,
    NotFound,
    PhotoNotInContest,
    ValidationError,
    VotingClosed,
)
from ..utils.time import utcnow
from .contests import get_contest, get_photo, photo_in_contest
from .phase import ContestPhase, resolve_phase
from .xp import XPAction, XPChange, award_action, publish_level_change

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


@dataclass
class VoteResult:
    vote: models.Vote
    created: bool
    xp: XPChange | None = None


@dataclass
class ToggleResult:
    vote: models.Vote | None
    action: str  # "created" | "removed" | "flipped"


@dataclass
class VoteAggregate:
    count: int
    sum: int
    average: float


def _check_vote_target(
    db: Session,
    voter_id: str,
    photo_id: int,
    contest_id: int,
    mode: str,
    now: datetime,
) -> None:
    """Shared gate for both voting schemes. Raises without touching state."""
    photo = get_photo(db, photo_id)
    if photo.owner_id == voter_id:
        raise ForbiddenSelfVote()

    contest = get_contest(db, contest_id)
    if contest.voting_mode != mode:
        raise ValidationError(f"This contest uses {contest.voting_mode} voting")

    phase = resolve_phase(contest, now)
    if phase != ContestPhase.VOTING:
        raise VotingClosed(phase=phase.value)

    if not photo_in_contest(db, photo, contest_id):
        raise PhotoNotInContest()

    if db.query(models.User.id).filter(models.User.id == voter_id).first() is None:
        raise NotFound("Voter not found")


def _find_vote(db: Session, voter_id: str, photo_id: int, contest_id: int) -> models.Vote | None:
    return (
        db.query(models.Vote)
        .filter(
            models.Vote.voter_id == voter_id,
            models.Vote.photo_id == photo_id,
            models.Vote.contest_id == contest_id,
        )
        .with_for_update()
        .first()
    )


def cast_vote(
    db: Session,
    voter_id: str,
    photo_id: int,
    contest_id: int,
    value: int,
    now: datetime | None = None,
) -> VoteResult:
    """
    Create or update the caller's rating of a photo within a contest.

    A new vote and its one-time VOTE XP award are committed together; a
    revote only refreshes the value and timestamp.
    """
    if isinstance(value, bool) or not isinstance(value, int) or not MIN_RATING <= value <= MAX_RATING:
        raise ValidationError(f"Vote value must be between {MIN_RATING} and {MAX_RATING}")

    now = now or utcnow()
    _check_vote_target(db, voter_id, photo_id, contest_id, "rating", now)

    vote = models.Vote(
        voter_id=voter_id,
        photo_id=photo_id,
        contest_id=contest_id,
        value=value,
        voted_at=now,
    )
    db.add(vote)
    try:
        db.flush()
    except IntegrityError as conflict:
        db.rollback()
        existing = _find_vote(db, voter_id, photo_id, contest_id)
        if existing is None:
            # Not a uniqueness conflict
            raise conflict
        existing.value = value
        existing.voted_at = now
        db.commit()
        db.refresh(existing)
        logger.info(f"Vote updated: user {voter_id} -> photo {photo_id} in contest {contest_id} = {value}")
        return VoteResult(vote=existing, created=False)

    try:
        change = award_action(
            db, voter_id, XPAction.VOTE, contest_id=contest_id, photo_id=photo_id, commit=False
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(vote)
    publish_level_change(change)
    logger.info(f"Vote cast: user {voter_id} -> photo {photo_id} in contest {contest_id} = {value}")
    return VoteResult(vote=vote, created=True, xp=change)


def toggle_binary_vote(
    db: Session,
    voter_id: str,
    photo_id: int,
    contest_id: int,
    direction: int,
    now: datetime | None = None,
) -> ToggleResult:
    """
    Up/down vote for contests in binary mode.

    No vote -> create with ``direction``; same direction -> remove;
    opposite direction -> flip. Binary votes earn no XP, since removing and
    re-adding a vote would otherwise farm it.
    """
    if direction not in (1, -1):
        raise ValidationError("Direction must be 1 or -1")

    now = now or utcnow()
    _check_vote_target(db, voter_id, photo_id, contest_id, "binary", now)

    existing = _find_vote(db, voter_id, photo_id, contest_id)
    if existing is None:
        vote = models.Vote(
            voter_id=voter_id,
            photo_id=photo_id,
            contest_id=contest_id,
            value=direction,
            voted_at=now,
        )
        db.add(vote)
        try:
            db.commit()
        except IntegrityError as conflict:
            db.rollback()
            existing = _find_vote(db, voter_id, photo_id, contest_id)
            if existing is None:
                raise conflict
        else:
            db.refresh(vote)
            return ToggleResult(vote=vote, action="created")

    if existing.value == direction:
        db.delete(existing)
        db.commit()
        return ToggleResult(vote=None, action="removed")

    existing.value = direction
    existing.voted_at = now
    db.commit()
    db.refresh(existing)
    return ToggleResult(vote=existing, action="flipped")


def aggregate_votes(db: Session, photo_id: int, contest_id: int | None = None) -> VoteAggregate:
    query = db.query(
        func.count(models.Vote.id).label("count"),
        func.coalesce(func.sum(models.Vote.value), 0).label("total"),
    ).filter(models.Vote.photo_id == photo_id)
    if contest_id is not None:
        query = query.filter(models.Vote.contest_id == contest_id)
    row = query.one()

    count = int(row.count or 0)
    total = int(row.total or 0)
    return VoteAggregate(count=count, sum=total, average=total / count if count else 0)


def list_user_votes(db: Session, voter_id: str, contest_id: int | None = None) -> list[models.Vote]:
    query = db.query(models.Vote).filter(models.Vote.voter_id == voter_id)
    if contest_id is not None:
        query = query.filter(models.Vote.contest_id == contest_id)
    return query.order_by(models.Vote.voted_at.desc()).all()
