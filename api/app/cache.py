"""Redis cache utility functions and the per-contest lock."""

from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator

import redis
from redis.exceptions import LockError

from .errors import ContestLocked
from .settings import CONTEST_LOCK_TIMEOUT_SECONDS, CONTEST_LOCK_WAIT_SECONDS

logger = logging.getLogger(__name__)

# Redis connection
_redis_client: redis.Redis | None = None

CONTEST_LOCK_KEY = "contest:lock:{contest_id}"


def get_redis_client() -> redis.Redis | None:
    """
    Get or create Redis client instance.

    Returns None if the connection fails.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    try:
        # Try to get Redis URL from environment, fallback to Celery broker URL
        redis_url = os.getenv("REDIS_URL") or os.getenv("CELERY_BROKER_URL", "redis://cache:6379/0")

        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=1,
            socket_timeout=2,
        )
        # Test connection
        client.ping()
        _redis_client = client
        logger.info("Redis cache connected successfully")
        return _redis_client
    except Exception as e:
        logger.warning(f"Redis cache unavailable: {e}. Continuing without cache.")
        return None


def cache_get(key: str) -> Any | None:
    """
    Retrieve a cached value by key.

    Args:
        key: Cache key

    Returns:
        Cached value if found, None otherwise
    """
    client = get_redis_client()
    if not client:
        return None

    try:
        value = client.get(key)
        if value is None:
            return None

        # Try to deserialize JSON
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            # Return as-is if not JSON
            return value
    except Exception as e:
        logger.warning(f"Cache get error for key '{key}': {e}")
        return None


def cache_set(key: str, value: Any, ttl: int = 300) -> bool:
    """
    Set a cached value with TTL.

    Args:
        key: Cache key
        value: Value to cache (will be JSON-serialized if dict/list)
        ttl: Time to live in seconds (default: 300 = 5 minutes)

    Returns:
        True if successful, False otherwise
    """
    client = get_redis_client()
    if not client:
        return False

    try:
        if isinstance(value, (dict, list)):
            serialized = json.dumps(value, default=str)
        else:
            serialized = str(value)

        client.setex(key, ttl, serialized)
        return True
    except Exception as e:
        logger.warning(f"Cache set error for key '{key}': {e}")
        return False


def cache_invalidate(pattern: str) -> int:
    """
    Invalidate cache entries matching a pattern.

    Args:
        pattern: Redis key pattern (e.g., "xp:leaderboard:*")

    Returns:
        Number of keys deleted
    """
    client = get_redis_client()
    if not client:
        return 0

    try:
        keys = list(client.scan_iter(match=pattern))
        if not keys:
            return 0

        deleted = client.delete(*keys)
        logger.info(f"Invalidated {deleted} cache entries matching pattern '{pattern}'")
        return deleted
    except Exception as e:
        logger.warning(f"Cache invalidate error for pattern '{pattern}': {e}")
        return 0


@contextmanager
def contest_lock(
    contest_id: int,
    timeout: int = CONTEST_LOCK_TIMEOUT_SECONDS,
    wait: int = CONTEST_LOCK_WAIT_SECONDS,
) -> Iterator[None]:
    """
    Single-flight guard for placement runs and recalculations of one contest.

    Raises ContestLocked if another holder keeps the lock past ``wait`` seconds.
    Without Redis the body runs unguarded (logged), matching the manual-script
    convention of one operator per contest.
    """
    client = get_redis_client()
    if not client:
        logger.warning(f"Redis unavailable, running contest {contest_id} job without a lock")
        yield
        return

    lock = client.lock(
        CONTEST_LOCK_KEY.format(contest_id=contest_id),
        timeout=timeout,
        blocking_timeout=wait,
    )
    if not lock.acquire():
        raise ContestLocked(f"Contest {contest_id} is being processed by another job")

    try:
        yield
    finally:
        try:
            lock.release()
        except LockError as e:
            # Expired while we worked; the next holder may already own it
            logger.warning(f"Contest {contest_id} lock was lost before release: {e}")
