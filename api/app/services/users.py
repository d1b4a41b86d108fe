"""User materialization on first sight."""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import ValidationError

logger = logging.getLogger(__name__)

# Bounded: a conflicting insert means the row now exists, so one retry suffices
# in practice; the extra attempts cover a reader on a lagging replica.
MAX_CREATE_ATTEMPTS = 3


def ensure_user(db: Session, user_id: str, nickname: str | None = None) -> models.User:
    """
    Return the user row for an identity-provider id, creating it if missing.

    Two requests racing on a brand new id both try to insert; the primary key
    rejects the loser, which rolls back and re-reads the winner's row.
    """
    if not user_id or not user_id.strip():
        raise ValidationError("User id must not be empty")

    for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
        user = db.query(models.User).filter(models.User.id == user_id).first()
        if user:
            return user

        user = models.User(id=user_id, nickname=nickname, roles=["user"], xp=0, level=0)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Concurrent creation of user {user_id} detected (attempt {attempt}), re-reading")
            continue
        db.refresh(user)
        logger.info(f"Created new user record for: {user_id}")
        return user

    user = db.query(models.User).filter(models.User.id == user_id).first()
    if user is None:
        raise RuntimeError(f"Could not materialize user {user_id}")
    return user
