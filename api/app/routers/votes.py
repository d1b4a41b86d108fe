"""Voting endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..services import votes as vote_service
from ..services.contests import get_photo

router = APIRouter(prefix="", tags=["Votes"])


@router.post("/votes", response_model=schemas.VoteResponse)
def cast_vote(
    payload: schemas.VoteCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.VoteResponse:
    """
    Rate a photo within a contest (1-5).

    Returns 201 when the vote is new and 200 when an existing vote was
    updated in place. Only a new vote earns XP.
    """
    result = vote_service.cast_vote(
        db, current_user.id, payload.photo_id, payload.contest_id, payload.value
    )
    if result.created:
        response.status_code = status.HTTP_201_CREATED

    return schemas.VoteResponse(
        vote=schemas.Vote.model_validate(result.vote),
        created=result.created,
        xp_awarded=result.xp.xp_delta if result.xp else 0,
        leveled_up=result.xp.leveled_up if result.xp else False,
        new_level=result.xp.new_level if result.xp else None,
    )


@router.post("/votes/toggle", response_model=schemas.ToggleResponse)
def toggle_vote(
    payload: schemas.BinaryVoteCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.ToggleResponse:
    """Up/down vote in a binary contest; repeating the same direction removes the vote."""
    result = vote_service.toggle_binary_vote(
        db, current_user.id, payload.photo_id, payload.contest_id, payload.direction
    )
    return schemas.ToggleResponse(
        action=result.action,
        vote=schemas.Vote.model_validate(result.vote) if result.vote else None,
    )


@router.get("/photos/{id}/votes", response_model=schemas.VoteAggregate)
def get_photo_votes(
    id: int,
    contest_id: int | None = Query(None),
    db: Session = Depends(get_db),
) -> schemas.VoteAggregate:
    get_photo(db, id)
    aggregate = vote_service.aggregate_votes(db, id, contest_id)
    return schemas.VoteAggregate(
        photo_id=id,
        contest_id=contest_id,
        count=aggregate.count,
        sum=aggregate.sum,
        average=aggregate.average,
    )


@router.get("/users/me/votes", response_model=list[schemas.Vote])
def list_my_votes(
    contest_id: int | None = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.Vote]:
    return [
        schemas.Vote.model_validate(v)
        for v in vote_service.list_user_votes(db, current_user.id, contest_id)
    ]
