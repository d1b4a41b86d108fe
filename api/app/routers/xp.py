"""XP, levels and leaderboard endpoints."""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, require_moderator
from ..deps import get_db, list_limit
from ..errors import NotFound
from ..services.leaderboard import get_leaderboard
from ..services.levels import LEVEL_XP_FACTOR, xp_for_level
from ..services.xp import (
    XP_REWARDS,
    XPAction,
    get_recent_transactions,
    get_user_timeframe_xp,
    get_user_xp_stats,
    recompute_user_totals,
)
from ..settings import MAX_LIST_LIMIT

router = APIRouter(prefix="/xp", tags=["XP"])
logger = logging.getLogger(__name__)

Timeframe = Literal["all", "monthly", "yearly"]


@router.get("/stats", response_model=schemas.XPStats)
def get_my_stats(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.XPStats:
    return schemas.XPStats(**get_user_xp_stats(db, current_user.id))


@router.get("/users/{user_id}/stats", response_model=schemas.XPStats)
def get_user_stats(user_id: str, db: Session = Depends(get_db)) -> schemas.XPStats:
    return schemas.XPStats(**get_user_xp_stats(db, user_id))


@router.get("/leaderboard", response_model=schemas.Leaderboard)
def leaderboard(
    timeframe: Timeframe = Query("all"),
    limit: int = Query(50, ge=1, le=MAX_LIST_LIMIT),
    db: Session = Depends(get_db),
) -> schemas.Leaderboard:
    """Top users by XP. Monthly and yearly boards rank by XP earned since the period began."""
    entries = get_leaderboard(db, timeframe, limit)
    return schemas.Leaderboard(
        timeframe=timeframe,
        leaderboard=[schemas.LeaderboardEntry(**entry) for entry in entries],
    )


@router.get("/timeframe/{timeframe}", response_model=schemas.TimeframeXP)
def get_my_timeframe_xp(
    timeframe: Timeframe,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.TimeframeXP:
    return schemas.TimeframeXP(
        timeframe=timeframe, xp=get_user_timeframe_xp(db, current_user.id, timeframe)
    )


@router.get("/users/{user_id}/timeframe/{timeframe}", response_model=schemas.TimeframeXP)
def get_user_timeframe(
    user_id: str,
    timeframe: Timeframe,
    db: Session = Depends(get_db),
) -> schemas.TimeframeXP:
    return schemas.TimeframeXP(timeframe=timeframe, xp=get_user_timeframe_xp(db, user_id, timeframe))


@router.get("/transactions", response_model=list[schemas.XPTransaction])
def get_my_transactions(
    limit: int = Depends(list_limit),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.XPTransaction]:
    return [
        schemas.XPTransaction.model_validate(tx)
        for tx in get_recent_transactions(db, current_user.id, limit)
    ]


@router.get("/rewards", response_model=schemas.RewardsInfo)
def get_rewards() -> schemas.RewardsInfo:
    """Reward table and how placement rewards stack."""
    first = XP_REWARDS[XPAction.PLACE_1ST]
    top10 = XP_REWARDS[XPAction.TOP_10_PERCENT]
    top25 = XP_REWARDS[XPAction.TOP_25_PERCENT]
    top50 = XP_REWARDS[XPAction.TOP_50_PERCENT]
    return schemas.RewardsInfo(
        rewards={action.value: amount for action, amount in XP_REWARDS.items()},
        level_xp_factor=LEVEL_XP_FACTOR,
        level_formula=f"xp_for_level(L) = L^2 * {LEVEL_XP_FACTOR} (level 5 needs {xp_for_level(5)} XP)",
        stacking_examples=[
            f"1st place earns {first} + {top10} + {top25} + {top50} = {first + top10 + top25 + top50} XP",
            f"A top-10% finish off the podium earns {top10} + {top25} + {top50} = {top10 + top25 + top50} XP",
            f"A top-50% finish earns {top50} XP",
        ],
    )


@router.post("/users/{user_id}/reconcile", response_model=schemas.ReconcileResponse, tags=["XP", "Admin"])
def reconcile_user(
    user_id: str,
    db: Session = Depends(get_db),
    moderator: models.User = Depends(require_moderator),
) -> schemas.ReconcileResponse:
    """Rebuild a user's cached XP and level from their full ledger (moderator only)."""
    if db.query(models.User.id).filter(models.User.id == user_id).first() is None:
        raise NotFound("User not found")
    change = recompute_user_totals(db, user_id)
    logger.info(f"User {user_id} reconciled by {moderator.id}")
    return schemas.ReconcileResponse(
        user_id=user_id,
        old_xp=change.old_xp,
        new_xp=change.new_xp,
        old_level=change.old_level,
        new_level=change.new_level,
    )
