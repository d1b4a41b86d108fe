"""Contest administration, ranking and placement endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_moderator
from ..cache import contest_lock
from ..deps import get_db
from ..services import contests as contest_service
from ..services.phase import ContestPhase, resolve_phase
from ..services.placements import PlacementReport, award_contest_placements
from ..services.ranking import rank_contest
from ..services.recalculation import recalculate_contest_xp

router = APIRouter(prefix="/contests", tags=["Contests"])
logger = logging.getLogger(__name__)


def _placement_report(report: PlacementReport) -> schemas.PlacementReport:
    return schemas.PlacementReport(
        contest_id=report.contest_id,
        participants=report.participants,
        transaction_count=report.transaction_count,
        awards=[
            schemas.PlacementAward(
                placement=award.entry.placement,
                photo_id=award.entry.photo_id,
                owner_id=award.entry.owner_id,
                actions=[action.value for action in award.actions],
                xp_awarded=award.xp_awarded,
            )
            for award in report.awards
        ],
    )


@router.get("", response_model=list[schemas.Contest])
def list_contests(
    phase: ContestPhase | None = Query(None),
    db: Session = Depends(get_db),
) -> list[schemas.Contest]:
    """List contests, newest first, optionally filtered by current phase."""
    return [
        schemas.Contest.model_validate(c) for c in contest_service.list_contests(db, phase)
    ]


@router.post("", response_model=schemas.Contest, status_code=status.HTTP_201_CREATED)
def create_contest(
    payload: schemas.ContestCreate,
    db: Session = Depends(get_db),
    moderator: models.User = Depends(require_moderator),
) -> schemas.Contest:
    contest = contest_service.create_contest(db, **payload.model_dump())
    logger.info(f"Contest {contest.id} created by {moderator.id}")
    return schemas.Contest.model_validate(contest)


@router.get("/{id}", response_model=schemas.Contest)
def get_contest(id: int, db: Session = Depends(get_db)) -> schemas.Contest:
    return schemas.Contest.model_validate(contest_service.get_contest(db, id))


@router.patch("/{id}", response_model=schemas.Contest)
def update_contest(
    id: int,
    payload: schemas.ContestUpdate,
    db: Session = Depends(get_db),
    moderator: models.User = Depends(require_moderator),
) -> schemas.Contest:
    contest = contest_service.get_contest(db, id)
    changes = payload.model_dump(exclude_unset=True)
    contest = contest_service.update_contest(db, contest, changes)
    return schemas.Contest.model_validate(contest)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_contest(
    id: int,
    db: Session = Depends(get_db),
    moderator: models.User = Depends(require_moderator),
) -> None:
    contest = contest_service.get_contest(db, id)
    contest_service.delete_contest(db, contest)


@router.get("/{id}/photos", response_model=list[schemas.Photo])
def list_contest_photos(id: int, db: Session = Depends(get_db)) -> list[schemas.Photo]:
    contest_service.get_contest(db, id)
    return [schemas.Photo.model_validate(p) for p in contest_service.contest_photos(db, id)]


@router.get("/{id}/ranking", response_model=schemas.ContestRanking)
def get_ranking(id: int, db: Session = Depends(get_db)) -> schemas.ContestRanking:
    """Current standings. Placements only become final once the contest has ended."""
    contest = contest_service.get_contest(db, id)
    entries = rank_contest(db, id)
    return schemas.ContestRanking(
        contest_id=id,
        phase=resolve_phase(contest).value,
        entries=[schemas.RankingEntry.model_validate(e) for e in entries],
    )


@router.post("/{id}/placements", response_model=schemas.PlacementReport)
def award_placements(
    id: int,
    db: Session = Depends(get_db),
    moderator: models.User = Depends(require_moderator),
) -> schemas.PlacementReport:
    """Award placement XP for an ended contest. Refused if it already ran."""
    with contest_lock(id):
        report = award_contest_placements(db, id)
    logger.info(f"Placements for contest {id} awarded by {moderator.id}")
    return _placement_report(report)


@router.post("/{id}/recalculate", response_model=schemas.RecalculationReport)
def recalculate(
    id: int,
    db: Session = Depends(get_db),
    moderator: models.User = Depends(require_moderator),
) -> schemas.RecalculationReport:
    """Reverse and re-award placement XP for a contest."""
    with contest_lock(id):
        report = recalculate_contest_xp(db, id)
    logger.info(f"Placement XP for contest {id} recalculated by {moderator.id}")
    return schemas.RecalculationReport(
        contest_id=id,
        removed_transactions=len(report.removed_transaction_ids),
        awarded_transactions=report.placements.transaction_count if report.placements else 0,
        affected_user_ids=report.affected_user_ids,
    )
