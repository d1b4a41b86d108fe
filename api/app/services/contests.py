"""Contest administration and submission membership."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from .. import models
from ..errors import ContestInUse, NotFound, ValidationError
from ..utils.time import as_naive_utc, utcnow
from .phase import ContestPhase, resolve_phase, validate_contest_window

logger = logging.getLogger(__name__)

VOTING_MODES = ("rating", "binary")
WINDOW_FIELDS = ("submission_start", "submission_end", "voting_start", "voting_end")


def get_contest(db: Session, contest_id: int) -> models.Contest:
    contest = db.query(models.Contest).filter(models.Contest.id == contest_id).first()
    if not contest:
        raise NotFound("Contest not found")
    return contest


def get_photo(db: Session, photo_id: int) -> models.Photo:
    photo = db.query(models.Photo).filter(models.Photo.id == photo_id).first()
    if not photo:
        raise NotFound("Photo not found")
    return photo


def photo_in_contest(db: Session, photo: models.Photo, contest_id: int) -> bool:
    """Membership through either the legacy direct link or the join table."""
    if photo.contest_id == contest_id:
        return True
    return (
        db.query(models.PhotoContest.id)
        .filter(
            models.PhotoContest.photo_id == photo.id,
            models.PhotoContest.contest_id == contest_id,
        )
        .first()
        is not None
    )


def contest_photos(db: Session, contest_id: int) -> list[models.Photo]:
    """Every photo submitted to the contest, de-duplicated, in id order."""
    joined_ids = db.query(models.PhotoContest.photo_id).filter(
        models.PhotoContest.contest_id == contest_id
    )
    return (
        db.query(models.Photo)
        .filter(
            (models.Photo.contest_id == contest_id) | (models.Photo.id.in_(joined_ids))
        )
        .order_by(models.Photo.id.asc())
        .all()
    )


def _check_voting_mode(mode: str) -> None:
    if mode not in VOTING_MODES:
        raise ValidationError(f"Voting mode must be one of: {', '.join(VOTING_MODES)}")


def create_contest(
    db: Session,
    *,
    title: str,
    submission_start: datetime,
    submission_end: datetime,
    voting_start: datetime,
    voting_end: datetime,
    description: str | None = None,
    max_photos_per_user: int | None = None,
    voting_mode: str = "rating",
) -> models.Contest:
    if not title or not title.strip():
        raise ValidationError("Title is required")
    if max_photos_per_user is not None and max_photos_per_user < 1:
        raise ValidationError("max_photos_per_user must be at least 1")
    _check_voting_mode(voting_mode)
    validate_contest_window(submission_start, submission_end, voting_start, voting_end)

    contest = models.Contest(
        title=title.strip(),
        description=description,
        submission_start=as_naive_utc(submission_start),
        submission_end=as_naive_utc(submission_end),
        voting_start=as_naive_utc(voting_start),
        voting_end=as_naive_utc(voting_end),
        max_photos_per_user=max_photos_per_user,
        voting_mode=voting_mode,
    )
    db.add(contest)
    db.commit()
    db.refresh(contest)
    logger.info(f"Created contest {contest.id} ({contest.title})")
    return contest


def update_contest(db: Session, contest: models.Contest, changes: dict[str, Any]) -> models.Contest:
    """
    Apply a partial update.

    The four window instants and the voting mode are frozen once voting has
    started; the window ordering is re-checked on the merged values.
    """
    touches_window = any(field in changes for field in WINDOW_FIELDS)
    phase = resolve_phase(contest)
    if (touches_window or "voting_mode" in changes) and phase in (
        ContestPhase.VOTING,
        ContestPhase.ENDED,
    ):
        raise ValidationError("Contest schedule cannot change once voting has started")

    if any(changes.get(field, True) is None for field in WINDOW_FIELDS):
        raise ValidationError("Contest boundaries cannot be cleared")
    if "title" in changes and (not changes["title"] or not changes["title"].strip()):
        raise ValidationError("Title is required")
    if changes.get("max_photos_per_user") is not None and changes["max_photos_per_user"] < 1:
        raise ValidationError("max_photos_per_user must be at least 1")
    if "voting_mode" in changes:
        _check_voting_mode(changes["voting_mode"])

    if touches_window:
        merged = {
            field: as_naive_utc(changes[field]) if field in changes else getattr(contest, field)
            for field in WINDOW_FIELDS
        }
        validate_contest_window(**merged)
        for field, value in merged.items():
            setattr(contest, field, value)

    for field in ("title", "description", "max_photos_per_user", "voting_mode"):
        if field in changes:
            setattr(contest, field, changes[field])

    db.commit()
    db.refresh(contest)
    return contest


def delete_contest(db: Session, contest: models.Contest) -> None:
    """Delete a contest that no vote or XP transaction references."""
    has_votes = (
        db.query(models.Vote.id).filter(models.Vote.contest_id == contest.id).first() is not None
    )
    has_xp = (
        db.query(models.XPTransaction.id)
        .filter(models.XPTransaction.contest_id == contest.id)
        .first()
        is not None
    )
    if has_votes or has_xp:
        raise ContestInUse()

    db.query(models.PhotoContest).filter(
        models.PhotoContest.contest_id == contest.id
    ).delete(synchronize_session=False)
    db.query(models.Photo).filter(models.Photo.contest_id == contest.id).update(
        {models.Photo.contest_id: None}, synchronize_session=False
    )
    db.query(models.Notification).filter(models.Notification.contest_id == contest.id).update(
        {models.Notification.contest_id: None}, synchronize_session=False
    )
    contest_id = contest.id
    db.delete(contest)
    db.commit()
    logger.info(f"Deleted contest {contest_id}")


def list_contests(db: Session, phase: ContestPhase | None = None) -> list[models.Contest]:
    contests = db.query(models.Contest).order_by(models.Contest.submission_start.desc()).all()
    if phase is None:
        return contests
    now = utcnow()
    return [c for c in contests if resolve_phase(c, now) == phase]
