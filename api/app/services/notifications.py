"""In-app notifications fed by lifecycle hooks."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from .. import events, models
from ..db import SessionLocal
from ..errors import NotFound

logger = logging.getLogger(__name__)


def _notify_users(
    user_ids: list[str],
    notification_type: str,
    title: str,
    message: str,
    link: str | None = None,
    contest_id: int | None = None,
) -> int:
    if not user_ids:
        return 0

    db = SessionLocal()
    try:
        for user_id in user_ids:
            db.add(
                models.Notification(
                    user_id=user_id,
                    notification_type=notification_type,
                    title=title,
                    message=message,
                    link=link,
                    contest_id=contest_id,
                )
            )
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    logger.info(f"Created {len(user_ids)} '{notification_type}' notification(s)")
    return len(user_ids)


def on_voting_started(contest_id: int, title: str, participant_ids: list[str], **_) -> None:
    _notify_users(
        participant_ids,
        "voting_started",
        "Voting Has Started!",
        f'Voting has started for "{title}"! Cast your votes now.',
        link=f"/contests/{contest_id}",
        contest_id=contest_id,
    )


def on_contest_ended(contest_id: int, participant_ids: list[str], title: str = "", **_) -> None:
    _notify_users(
        participant_ids,
        "contest_ended",
        "Contest Ended!",
        f'The contest "{title}" has ended. Check out the results!',
        link=f"/contests/{contest_id}",
        contest_id=contest_id,
    )


def on_user_leveled_up(user_id: str, new_level: int, **_) -> None:
    _notify_users(
        [user_id],
        "level_up",
        "Level Up!",
        f"You reached level {new_level}.",
        link="/xp",
    )


def register_notification_handlers() -> None:
    events.subscribe(events.VOTING_STARTED, on_voting_started)
    events.subscribe(events.CONTEST_ENDED, on_contest_ended)
    events.subscribe(events.USER_LEVELED_UP, on_user_leveled_up)


def list_notifications(
    db: Session, user_id: str, unread_only: bool = False, limit: int = 50
) -> list[models.Notification]:
    query = db.query(models.Notification).filter(models.Notification.user_id == user_id)
    if unread_only:
        query = query.filter(models.Notification.is_read.is_(False))
    return (
        query.order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
        .limit(limit)
        .all()
    )


def unread_count(db: Session, user_id: str) -> int:
    return (
        db.query(models.Notification)
        .filter(models.Notification.user_id == user_id, models.Notification.is_read.is_(False))
        .count()
    )


def mark_read(db: Session, user_id: str, notification_id: int) -> models.Notification:
    notification = (
        db.query(models.Notification)
        .filter(
            models.Notification.id == notification_id,
            models.Notification.user_id == user_id,
        )
        .first()
    )
    if not notification:
        raise NotFound("Notification not found")
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: str) -> int:
    updated = (
        db.query(models.Notification)
        .filter(models.Notification.user_id == user_id, models.Notification.is_read.is_(False))
        .update({models.Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return updated
