"""XP leaderboards, cached in Redis."""

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from ..cache import cache_get, cache_set
from ..settings import LEADERBOARD_CACHE_TTL_SECONDS, MAX_LIST_LIMIT
from .levels import level_from_xp
from .xp import timeframe_start

logger = logging.getLogger(__name__)

LEADERBOARD_CACHE_KEY = "xp:leaderboard:{timeframe}:{limit}"


def _all_time(db: Session, limit: int) -> list[dict]:
    users = (
        db.query(models.User)
        .filter(models.User.xp > 0)
        .order_by(models.User.xp.desc(), models.User.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {"user_id": u.id, "nickname": u.nickname, "xp": u.xp, "level": u.level}
        for u in users
    ]


def _since(db: Session, start, limit: int) -> list[dict]:
    total = func.sum(models.XPTransaction.xp_amount).label("total")
    rows = (
        db.query(models.User.id, models.User.nickname, models.User.xp, total)
        .join(models.XPTransaction, models.XPTransaction.user_id == models.User.id)
        .filter(models.XPTransaction.awarded_at >= start)
        .group_by(models.User.id, models.User.nickname, models.User.xp)
        .having(func.sum(models.XPTransaction.xp_amount) > 0)
        .order_by(total.desc(), models.User.id.asc())
        .limit(limit)
        .all()
    )
    # Level reflects lifetime XP; the ranking value is the timeframe sum
    return [
        {
            "user_id": row.id,
            "nickname": row.nickname,
            "xp": int(row.total),
            "level": level_from_xp(row.xp or 0),
        }
        for row in rows
    ]


def get_leaderboard(db: Session, timeframe: str = "all", limit: int = 50) -> list[dict]:
    """Top users by XP for ``timeframe`` (all, monthly or yearly), ranked from 1."""
    start = timeframe_start(timeframe)
    limit = max(1, min(limit, MAX_LIST_LIMIT))

    cache_key = LEADERBOARD_CACHE_KEY.format(timeframe=timeframe, limit=limit)
    cached = cache_get(cache_key)
    if isinstance(cached, list):
        return cached

    entries = _all_time(db, limit) if start is None else _since(db, start, limit)
    for rank, entry in enumerate(entries, start=1):
        entry["rank"] = rank

    cache_set(cache_key, entries, ttl=LEADERBOARD_CACHE_TTL_SECONDS)
    return entries
