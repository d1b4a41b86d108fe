"""User profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..errors import NotFound

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=schemas.UserPublic)
def get_me(current_user: models.User = Depends(get_current_user)) -> schemas.UserPublic:
    """The caller's profile. The first authenticated request creates it."""
    return schemas.UserPublic.model_validate(current_user)


@router.get("/{id}", response_model=schemas.UserPublic)
def get_user(id: str, db: Session = Depends(get_db)) -> schemas.UserPublic:
    user = db.query(models.User).filter(models.User.id == id).first()
    if not user:
        raise NotFound("User not found")
    return schemas.UserPublic.model_validate(user)
