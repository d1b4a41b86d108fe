"""Contest ranking."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from .contests import contest_photos, get_contest


@dataclass
class RankedEntry:
    placement: int
    photo_id: int
    owner_id: str
    total_score: int
    vote_count: int

    def to_dict(self) -> dict:
        return asdict(self)


def rank_contest(db: Session, contest_id: int) -> list[RankedEntry]:
    """
    Rank every photo submitted to a contest by the sum of its vote values.

    Ordering: higher total score, then more votes, then lower photo id. The
    last key makes the order a pure function of the vote snapshot, so two
    runs over the same votes always assign the same placements.
    """
    get_contest(db, contest_id)

    photos = contest_photos(db, contest_id)
    if not photos:
        return []

    rows = (
        db.query(
            models.Vote.photo_id,
            func.coalesce(func.sum(models.Vote.value), 0).label("total"),
            func.count(models.Vote.id).label("count"),
        )
        .filter(
            models.Vote.contest_id == contest_id,
            models.Vote.photo_id.in_([p.id for p in photos]),
        )
        .group_by(models.Vote.photo_id)
        .all()
    )
    scores = {row.photo_id: (int(row.total or 0), int(row.count or 0)) for row in rows}

    # photos is already in id order and sorted() is stable
    ordered = sorted(
        photos,
        key=lambda p: (-scores.get(p.id, (0, 0))[0], -scores.get(p.id, (0, 0))[1]),
    )

    return [
        RankedEntry(
            placement=index,
            photo_id=photo.id,
            owner_id=photo.owner_id,
            total_score=scores.get(photo.id, (0, 0))[0],
            vote_count=scores.get(photo.id, (0, 0))[1],
        )
        for index, photo in enumerate(ordered, start=1)
    ]


def percentile(placement: int, total_participants: int) -> float:
    return placement / total_participants * 100
