"""Lifecycle hooks.

The core emits an event only after the state change it describes has been
committed. Subscribers (notifications, email, push) register handlers here;
their failures are logged and never reach the emitting code path.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

VOTING_STARTED = "voting_started"
CONTEST_ENDED = "contest_ended"
USER_LEVELED_UP = "user_leveled_up"
USER_LEVELED_DOWN = "user_leveled_down"

EVENT_NAMES = frozenset({VOTING_STARTED, CONTEST_ENDED, USER_LEVELED_UP, USER_LEVELED_DOWN})

Handler = Callable[..., Any]

_handlers: dict[str, list[Handler]] = defaultdict(list)


def subscribe(event: str, handler: Handler) -> None:
    """Register ``handler`` for ``event``. Registering the same handler twice is a no-op."""
    if event not in EVENT_NAMES:
        raise ValueError(f"Unknown event: {event}")
    if handler not in _handlers[event]:
        _handlers[event].append(handler)


def unsubscribe(event: str, handler: Handler) -> None:
    if handler in _handlers.get(event, []):
        _handlers[event].remove(handler)


def clear_subscribers() -> None:
    _handlers.clear()


def emit(event: str, **payload: Any) -> int:
    """
    Call every handler subscribed to ``event`` with ``payload`` as keyword arguments.

    Returns the number of handlers that completed without raising.
    """
    delivered = 0
    for handler in list(_handlers.get(event, [])):
        try:
            handler(**payload)
            delivered += 1
        except Exception as e:
            logger.error(
                f"Handler {getattr(handler, '__name__', handler)!r} failed for event '{event}': {e}",
                exc_info=True,
            )
    logger.debug(f"Emitted '{event}' to {delivered} handler(s)")
    return delivered
