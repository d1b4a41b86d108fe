"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Run Alembic upgrades when the API process starts.
RUN_MIGRATIONS_ON_STARTUP: bool = _bool_env("RUN_MIGRATIONS_ON_STARTUP", True)

# How long XP leaderboards stay cached in Redis (seconds).
LEADERBOARD_CACHE_TTL_SECONDS: int = _int_env("LEADERBOARD_CACHE_TTL_SECONDS", 60)

# Per-contest lock used by placement runs and recalculations.
# The lock auto-expires after CONTEST_LOCK_TIMEOUT_SECONDS so a crashed worker
# cannot wedge a contest forever.
CONTEST_LOCK_TIMEOUT_SECONDS: int = _int_env("CONTEST_LOCK_TIMEOUT_SECONDS", 600)
CONTEST_LOCK_WAIT_SECONDS: int = _int_env("CONTEST_LOCK_WAIT_SECONDS", 5)

# Interval of the Celery beat job that announces voting and finalizes contests.
CONTEST_FINALIZE_INTERVAL_SECONDS: int = _int_env("CONTEST_FINALIZE_INTERVAL_SECONDS", 300)

# Upper bound for leaderboard / transaction listing limits.
MAX_LIST_LIMIT: int = _int_env("MAX_LIST_LIMIT", 100)
