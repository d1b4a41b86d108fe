from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any

from celery import Celery
from sqlalchemy.orm import Session

from .settings import CONTEST_FINALIZE_INTERVAL_SECONDS

logger = logging.getLogger(__name__)

DEFAULT_REDIS = "redis://cache:6379/0"

celery_app = Celery(
    "photo_contest",
    broker=os.getenv("CELERY_BROKER_URL", DEFAULT_REDIS),
    backend=os.getenv("CELERY_RESULT_BACKEND", DEFAULT_REDIS),
)

celery_app.conf.update(
    task_default_queue="default",
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    worker_max_tasks_per_child=100,
    beat_schedule={
        "finalize-contests": {
            "task": "app.tasks.finalize_contests",
            "schedule": float(CONTEST_FINALIZE_INTERVAL_SECONDS),
        },
    },
    timezone="UTC",
)


def _announce_voting(db: Session, contest, now: datetime) -> None:
    from . import events
    from .services.contests import contest_photos

    contest.voting_announced_at = now
    db.commit()
    participant_ids = sorted({p.owner_id for p in contest_photos(db, contest.id)})
    events.emit(
        events.VOTING_STARTED,
        contest_id=contest.id,
        title=contest.title,
        participant_ids=participant_ids,
    )
    logger.info(f"Announced voting for contest {contest.id} to {len(participant_ids)} participant(s)")


def finalize_contests_sync(db: Session | None = None, now: datetime | None = None) -> dict[str, Any]:
    """
    Announce contests that entered voting and award placements for ended ones.

    Each contest is handled independently; one failure is logged and the
    rest still run.
    """
    from . import models
    from .cache import contest_lock
    from .db import SessionLocal
    from .errors import ContestLocked, PlacementsAlreadyAwarded
    from .services.phase import ContestPhase, resolve_phase
    from .services.placements import award_contest_placements
    from .utils.time import utcnow

    now = now or utcnow()
    owns_session = db is None
    if owns_session:
        db = SessionLocal()

    result: dict[str, Any] = {"announced": [], "finalized": [], "skipped": [], "failed": []}
    try:
        candidates = (
            db.query(models.Contest)
            .filter(
                models.Contest.placements_awarded_at.is_(None),
                models.Contest.voting_start <= now,
            )
            .order_by(models.Contest.voting_end.asc(), models.Contest.id.asc())
            .all()
        )
        for contest in candidates:
            contest_id = contest.id
            phase = resolve_phase(contest, now)
            try:
                if phase == ContestPhase.VOTING and contest.voting_announced_at is None:
                    _announce_voting(db, contest, now)
                    result["announced"].append(contest_id)
                elif phase == ContestPhase.ENDED:
                    with contest_lock(contest_id):
                        award_contest_placements(db, contest_id, now=now)
                    result["finalized"].append(contest_id)
            except (ContestLocked, PlacementsAlreadyAwarded) as e:
                db.rollback()
                logger.info(f"Skipping contest {contest_id}: {e.detail}")
                result["skipped"].append(contest_id)
            except Exception as e:
                db.rollback()
                logger.error(f"Finalizing contest {contest_id} failed: {e}", exc_info=True)
                result["failed"].append(contest_id)
    finally:
        if owns_session:
            db.close()

    if result["announced"] or result["finalized"] or result["failed"]:
        logger.info(
            f"finalize_contests: announced={result['announced']} finalized={result['finalized']} "
            f"skipped={result['skipped']} failed={result['failed']}"
        )
    return result


@celery_app.task(name="app.tasks.finalize_contests", bind=True)
def finalize_contests(self) -> dict[str, Any]:
    """Celery task wrapper for finalize_contests_sync."""
    from .services.notifications import register_notification_handlers

    register_notification_handlers()
    return finalize_contests_sync()


@celery_app.task(name="app.tasks.recalculate_contest", bind=True)
def recalculate_contest(self, contest_id: int) -> dict[str, Any]:
    """Run a placement recalculation off the request path."""
    from .cache import contest_lock
    from .db import SessionLocal
    from .errors import ContestEngineError
    from .services.recalculation import recalculate_contest_xp

    db = SessionLocal()
    try:
        with contest_lock(contest_id):
            report = recalculate_contest_xp(db, contest_id)
    except ContestEngineError as e:
        logger.warning(f"Recalculation for contest {contest_id} refused: {e.detail}")
        return {"status": "refused", "contest_id": contest_id, "code": e.code}
    finally:
        db.close()

    return {
        "status": "ok",
        "contest_id": contest_id,
        "removed": len(report.removed_transaction_ids),
        "affected_user_ids": report.affected_user_ids,
    }
