"""Notification endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db, list_limit
from ..services import notifications as notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=list[schemas.Notification])
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Depends(list_limit),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.Notification]:
    return [
        schemas.Notification.model_validate(n)
        for n in notification_service.list_notifications(db, current_user.id, unread_only, limit)
    ]


@router.get("/unread-count", response_model=schemas.UnreadCount)
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UnreadCount:
    return schemas.UnreadCount(count=notification_service.unread_count(db, current_user.id))


@router.post("/{id}/read", response_model=schemas.Notification)
def mark_read(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Notification:
    return schemas.Notification.model_validate(
        notification_service.mark_read(db, current_user.id, id)
    )


@router.post("/read-all", response_model=schemas.MarkAllReadResponse)
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.MarkAllReadResponse:
    return schemas.MarkAllReadResponse(
        updated=notification_service.mark_all_read(db, current_user.id)
    )
