"""Photo endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..services import photos as photo_service
from ..services.contests import get_photo as load_photo

router = APIRouter(prefix="/photos", tags=["Photos"])


@router.post("", response_model=schemas.Photo, status_code=status.HTTP_201_CREATED)
def create_photo(
    payload: schemas.PhotoCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Photo:
    photo = photo_service.create_photo(db, current_user.id, payload.title, payload.image_url)
    return schemas.Photo.model_validate(photo)


@router.get("/mine", response_model=list[schemas.Photo])
def list_my_photos(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.Photo]:
    return [
        schemas.Photo.model_validate(p)
        for p in photo_service.list_user_photos(db, current_user.id)
    ]


@router.get("/{id}", response_model=schemas.Photo)
def get_photo(id: int, db: Session = Depends(get_db)) -> schemas.Photo:
    return schemas.Photo.model_validate(load_photo(db, id))


@router.post(
    "/{id}/submissions",
    response_model=schemas.SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_photo(
    id: int,
    payload: schemas.SubmissionCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.SubmissionResponse:
    """Enter one of your photos into a contest that is accepting submissions."""
    submission, change = photo_service.submit_photo(db, current_user.id, id, payload.contest_id)
    return schemas.SubmissionResponse(
        photo_id=submission.photo_id,
        contest_id=submission.contest_id,
        submitted_at=submission.submitted_at,
        xp_awarded=change.xp_delta,
        total_xp=change.new_xp,
        level=change.new_level,
    )


@router.delete("/{id}", response_model=schemas.PhotoDeleteResponse)
def delete_photo(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.PhotoDeleteResponse:
    change = photo_service.delete_photo(db, current_user.id, id)
    return schemas.PhotoDeleteResponse(xp_deducted=-change.xp_delta if change else 0)
