"""Photo registration, contest submission and deletion."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import (
    AlreadySubmitted,
    PermissionDenied,
    SubmissionClosed,
    SubmissionLimitReached,
    ValidationError,
)
from ..utils.time import utcnow
from .contests import contest_photos, get_contest, get_photo, photo_in_contest
from .phase import ContestPhase, resolve_phase
from .xp import XPAction, XPChange, award_action, deduct_xp, publish_level_change

logger = logging.getLogger(__name__)


def create_photo(
    db: Session, owner_id: str, title: str, image_url: str | None = None
) -> models.Photo:
    if not title or not title.strip():
        raise ValidationError("Title is required")
    photo = models.Photo(owner_id=owner_id, title=title.strip(), image_url=image_url)
    db.add(photo)
    db.commit()
    db.refresh(photo)
    return photo


def list_user_photos(db: Session, owner_id: str) -> list[models.Photo]:
    return (
        db.query(models.Photo)
        .filter(models.Photo.owner_id == owner_id)
        .order_by(models.Photo.created_at.desc(), models.Photo.id.desc())
        .all()
    )


def submit_photo(
    db: Session,
    user_id: str,
    photo_id: int,
    contest_id: int,
    now: datetime | None = None,
) -> tuple[models.PhotoContest, XPChange]:
    """Enter an owned photo into a contest during its submission window."""
    photo = get_photo(db, photo_id)
    if photo.owner_id != user_id:
        raise PermissionDenied("You can only submit your own photos")

    contest = get_contest(db, contest_id)
    if resolve_phase(contest, now or utcnow()) != ContestPhase.SUBMISSION:
        raise SubmissionClosed()

    if photo_in_contest(db, photo, contest_id):
        raise AlreadySubmitted()

    if contest.max_photos_per_user:
        submitted = sum(1 for p in contest_photos(db, contest_id) if p.owner_id == user_id)
        if submitted >= contest.max_photos_per_user:
            raise SubmissionLimitReached(
                f"You can submit at most {contest.max_photos_per_user} photo(s) to this contest"
            )

    submission = models.PhotoContest(photo_id=photo.id, contest_id=contest_id, submitted_at=utcnow())
    db.add(submission)
    try:
        db.flush()
        change = award_action(
            db, user_id, XPAction.SUBMIT_PHOTO, contest_id=contest_id, photo_id=photo.id, commit=False
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadySubmitted()
    except Exception:
        db.rollback()
        raise

    db.refresh(submission)
    publish_level_change(change)
    logger.info(f"Photo {photo.id} submitted to contest {contest_id} by {user_id}")
    return submission, change


def delete_photo(db: Session, user_id: str, photo_id: int) -> XPChange | None:
    """
    Delete an owned photo with its votes and submissions.

    Submission XP the photo earned is taken back as a PHOTO_DELETION row.
    Placement XP is kept.
    """
    photo = get_photo(db, photo_id)
    if photo.owner_id != user_id:
        raise PermissionDenied()

    earned = (
        db.query(func.coalesce(func.sum(models.XPTransaction.xp_amount), 0))
        .filter(
            models.XPTransaction.photo_id == photo.id,
            models.XPTransaction.user_id == user_id,
            models.XPTransaction.action_type == XPAction.SUBMIT_PHOTO.value,
        )
        .scalar()
    )
    earned = int(earned or 0)

    change = None
    try:
        if earned > 0:
            change = deduct_xp(
                db, user_id, earned, "Photo deleted", XPAction.PHOTO_DELETION, commit=False
            )
        # Ledger rows outlive the photo
        db.query(models.XPTransaction).filter(models.XPTransaction.photo_id == photo.id).update(
            {models.XPTransaction.photo_id: None}, synchronize_session=False
        )
        db.delete(photo)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if change:
        publish_level_change(change)
    logger.info(f"Photo {photo_id} deleted by {user_id} (deducted {earned} XP)")
    return change
