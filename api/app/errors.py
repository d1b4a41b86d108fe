"""Typed errors raised by the contest, voting and XP services.

Routers never translate these by hand: ``main.py`` registers a single
exception handler that renders ``{"detail": ..., "code": ...}`` with the
status code carried by the error class.
"""

from __future__ import annotations

from fastapi import status


class ContestEngineError(Exception):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "contest_error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)


class ValidationError(ContestEngineError):
    """Malformed input."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class NotFound(ContestEngineError):
    """Resource not found."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class PermissionDenied(ContestEngineError):
    """You don't have permission to modify this resource."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "permission_denied"


class ForbiddenSelfVote(ContestEngineError):
    """You cannot vote on your own photo."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden_self_vote"


class VotingClosed(ContestEngineError):
    """Contest is not in the voting phase."""

    status_code = status.HTTP_409_CONFLICT
    code = "voting_closed"

    def __init__(self, detail: str | None = None, phase: str | None = None) -> None:
        self.phase = phase
        super().__init__(detail)


class PhotoNotInContest(ContestEngineError):
    """The photo is not part of this contest."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "photo_not_in_contest"


class SubmissionClosed(ContestEngineError):
    """Contest is not accepting submissions."""

    status_code = status.HTTP_409_CONFLICT
    code = "submission_closed"


class SubmissionLimitReached(ContestEngineError):
    """Submission limit reached for this contest."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "submission_limit_reached"


class AlreadySubmitted(ContestEngineError):
    """Photo is already submitted to this contest."""

    status_code = status.HTTP_409_CONFLICT
    code = "already_submitted"


class ContestNotEnded(ContestEngineError):
    """Contest has not ended yet."""

    status_code = status.HTTP_409_CONFLICT
    code = "contest_not_ended"


class PlacementsAlreadyAwarded(ContestEngineError):
    """Placement XP was already awarded for this contest; run a recalculation instead."""

    status_code = status.HTTP_409_CONFLICT
    code = "placements_already_awarded"


class ContestLocked(ContestEngineError):
    """Another placement run or recalculation holds this contest."""

    status_code = status.HTTP_409_CONFLICT
    code = "contest_locked"


class ContestInUse(ContestEngineError):
    """Contest is referenced by votes or XP history and cannot be deleted."""

    status_code = status.HTTP_409_CONFLICT
    code = "contest_in_use"
