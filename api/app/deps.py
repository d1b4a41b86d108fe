from __future__ import annotations

from typing import Generator

from fastapi import Query
from sqlalchemy.orm import Session

from .db import get_session
from .settings import MAX_LIST_LIMIT


def get_db() -> Generator[Session, None, None]:
    yield from get_session()


def list_limit(limit: int = Query(20, ge=1, le=MAX_LIST_LIMIT)) -> int:
    """Page size for list endpoints, capped by MAX_LIST_LIMIT."""
    return limit
