from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from .services.phase import resolve_phase


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class ErrorResponse(BaseModel):
    """Body of every domain error response."""

    detail: str
    code: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


# ============================================================================
# USER SCHEMAS
# ============================================================================


class UserPublic(BaseModel):
    """Public user profile."""

    id: str
    nickname: str | None = None
    xp: int
    level: int
    roles: list[Literal["user", "moderator", "owner"]] = ["user"]
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# CONTEST SCHEMAS
# ============================================================================


class ContestBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=5000)
    submission_start: datetime
    submission_end: datetime
    voting_start: datetime
    voting_end: datetime
    max_photos_per_user: int | None = Field(None, ge=1)
    voting_mode: Literal["rating", "binary"] = "rating"


class ContestCreate(ContestBase):
    """Create contest request."""


class ContestUpdate(BaseModel):
    """Partial contest update. Omitted fields are left unchanged."""

    title: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=5000)
    submission_start: datetime | None = None
    submission_end: datetime | None = None
    voting_start: datetime | None = None
    voting_end: datetime | None = None
    max_photos_per_user: int | None = Field(None, ge=1)
    voting_mode: Literal["rating", "binary"] | None = None


class Contest(ContestBase):
    """Contest with its phase derived at serialization time."""

    id: int
    placements_awarded_at: datetime | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def phase(self) -> str:
        return resolve_phase(self).value


# ============================================================================
# PHOTO SCHEMAS
# ============================================================================


class PhotoCreate(BaseModel):
    """Register photo request."""

    title: str = Field(..., min_length=1, max_length=200)
    image_url: str | None = Field(None, max_length=1000)


class Photo(BaseModel):
    id: int
    owner_id: str
    title: str
    image_url: str | None = None
    contest_id: int | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class SubmissionCreate(BaseModel):
    """Submit photo to contest request."""

    contest_id: int


class SubmissionResponse(BaseModel):
    photo_id: int
    contest_id: int
    submitted_at: datetime
    xp_awarded: int
    total_xp: int
    level: int


class PhotoDeleteResponse(BaseModel):
    deleted: bool = True
    xp_deducted: int = 0


# ============================================================================
# VOTE SCHEMAS
# ============================================================================


class VoteCreate(BaseModel):
    """Rating vote request."""

    photo_id: int
    contest_id: int
    value: int


class BinaryVoteCreate(BaseModel):
    """Up/down vote request for binary contests."""

    photo_id: int
    contest_id: int
    direction: Literal[1, -1]


class Vote(BaseModel):
    id: int
    voter_id: str
    photo_id: int
    contest_id: int
    value: int
    voted_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VoteResponse(BaseModel):
    vote: Vote
    created: bool
    xp_awarded: int = 0
    leveled_up: bool = False
    new_level: int | None = None


class ToggleResponse(BaseModel):
    action: Literal["created", "removed", "flipped"]
    vote: Vote | None = None


class VoteAggregate(BaseModel):
    photo_id: int
    contest_id: int | None = None
    count: int
    sum: int
    average: float


# ============================================================================
# RANKING & PLACEMENT SCHEMAS
# ============================================================================


class RankingEntry(BaseModel):
    placement: int
    photo_id: int
    owner_id: str
    total_score: int
    vote_count: int

    model_config = ConfigDict(from_attributes=True)


class ContestRanking(BaseModel):
    contest_id: int
    phase: str
    entries: list[RankingEntry]


class PlacementAward(BaseModel):
    placement: int
    photo_id: int
    owner_id: str
    actions: list[str]
    xp_awarded: int


class PlacementReport(BaseModel):
    contest_id: int
    participants: int
    transaction_count: int
    awards: list[PlacementAward]


class RecalculationReport(BaseModel):
    contest_id: int
    removed_transactions: int
    awarded_transactions: int
    affected_user_ids: list[str]


# ============================================================================
# XP SCHEMAS
# ============================================================================


class XPStats(BaseModel):
    level: int
    total_xp: int
    current_level_xp: int
    next_level_xp: int
    xp_in_current_level: int
    xp_needed_for_next_level: int
    progress_percent: float


class TimeframeXP(BaseModel):
    timeframe: Literal["all", "monthly", "yearly"]
    xp: int


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    nickname: str | None = None
    xp: int
    level: int


class Leaderboard(BaseModel):
    timeframe: Literal["all", "monthly", "yearly"]
    leaderboard: list[LeaderboardEntry]


class XPTransaction(BaseModel):
    id: int
    xp_amount: int
    reason: str
    action_type: str
    category: str | None = None
    contest_id: int | None = None
    contest_title: str | None = None
    photo_id: int | None = None
    awarded_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def _contest_title(cls, data):
        # ORM rows carry the title through the joined contest
        contest = getattr(data, "contest", None)
        if contest is not None and not isinstance(data, dict):
            return {
                "id": data.id,
                "xp_amount": data.xp_amount,
                "reason": data.reason,
                "action_type": data.action_type,
                "category": data.category,
                "contest_id": data.contest_id,
                "contest_title": contest.title,
                "photo_id": data.photo_id,
                "awarded_at": data.awarded_at,
            }
        return data


class RewardsInfo(BaseModel):
    rewards: dict[str, int]
    level_xp_factor: int
    level_formula: str
    stacking_examples: list[str]


class ReconcileResponse(BaseModel):
    user_id: str
    old_xp: int
    new_xp: int
    old_level: int
    new_level: int


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================


class Notification(BaseModel):
    id: int
    notification_type: str
    title: str
    message: str
    link: str | None = None
    contest_id: int | None = None
    is_read: bool
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class UnreadCount(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    updated: int
