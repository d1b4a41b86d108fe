from __future__ import annotations

import os
import tempfile
from datetime import timedelta
from typing import Callable, Generator

# Environment must be in place before the app modules read it at import time.
_DB_DIR = tempfile.mkdtemp(prefix="photo-contest-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["REDIS_URL"] = "redis://127.0.0.1:6399/0"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-the-contest-suite-0123456789")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app import events, models  # noqa: E402
from app.auth import create_access_token  # noqa: E402
from app.db import Base, SessionLocal, engine  # noqa: E402
from app.main import app, run_startup_tasks  # noqa: E402
from app.services.notifications import register_notification_handlers  # noqa: E402
from app.utils.time import utcnow  # noqa: E402

HOUR = timedelta(hours=1)

# (submission_start, submission_end, voting_start, voting_end) offsets in hours from now
PHASE_WINDOWS = {
    "upcoming": (1, 2, 3, 4),
    "submission": (-1, 1, 2, 3),
    "processing": (-3, -2, 1, 2),
    "voting": (-3, -2, -1, 1),
    "ended": (-4, -3, -2, -1),
}


@pytest.fixture(scope="session", autouse=True)
def bootstrap() -> None:
    Base.metadata.create_all(bind=engine)
    run_startup_tasks()


@pytest.fixture(autouse=True)
def clean_state() -> Generator[None, None, None]:
    yield
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())
    events.clear_subscribers()
    register_notification_handlers()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def make_user(db: Session) -> Callable[..., models.User]:
    def _make(user_id: str, xp: int = 0, level: int = 0, roles: list[str] | None = None) -> models.User:
        user = models.User(id=user_id, nickname=user_id, roles=roles or ["user"], xp=xp, level=level)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_contest(db: Session) -> Callable[..., models.Contest]:
    def _make(phase: str = "voting", title: str = "Golden Hour", **fields) -> models.Contest:
        now = utcnow()
        sub_start, sub_end, vote_start, vote_end = PHASE_WINDOWS[phase]
        contest = models.Contest(
            title=title,
            submission_start=now + sub_start * HOUR,
            submission_end=now + sub_end * HOUR,
            voting_start=now + vote_start * HOUR,
            voting_end=now + vote_end * HOUR,
            voting_mode=fields.pop("voting_mode", "rating"),
            **fields,
        )
        db.add(contest)
        db.commit()
        db.refresh(contest)
        return contest

    return _make


@pytest.fixture()
def make_photo(db: Session) -> Callable[..., models.Photo]:
    def _make(owner_id: str, contest: models.Contest | None = None, legacy: bool = False) -> models.Photo:
        photo = models.Photo(owner_id=owner_id, title=f"Photo by {owner_id}")
        if contest is not None and legacy:
            photo.contest_id = contest.id
        db.add(photo)
        db.flush()
        if contest is not None and not legacy:
            db.add(models.PhotoContest(photo_id=photo.id, contest_id=contest.id))
        db.commit()
        db.refresh(photo)
        return photo

    return _make


@pytest.fixture()
def make_vote(db: Session) -> Callable[..., models.Vote]:
    """Insert a vote row directly, bypassing the phase gate."""

    def _make(voter_id: str, photo: models.Photo, contest: models.Contest, value: int) -> models.Vote:
        vote = models.Vote(voter_id=voter_id, photo_id=photo.id, contest_id=contest.id, value=value)
        db.add(vote)
        db.commit()
        return vote

    return _make


@pytest.fixture()
def auth_headers() -> Callable[[str], dict[str, str]]:
    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers
