"""Level curve: ``xp_for_level(L) = L² × LEVEL_XP_FACTOR``."""

from __future__ import annotations

from math import isqrt

# Canonical level constant. The only place the curve is defined.
LEVEL_XP_FACTOR = 100


def xp_for_level(level: int) -> int:
    """Total XP required to reach ``level``."""
    if level <= 0:
        return 0
    return level * level * LEVEL_XP_FACTOR


def level_from_xp(xp: int) -> int:
    """
    Largest level whose threshold is at most ``xp``.

    Monotonic and total: any ``xp <= 0`` maps to level 0. Because the factor
    is an integer, ``L² × K <= xp`` is equivalent to ``L² <= xp // K``.
    """
    if xp <= 0:
        return 0
    return isqrt(xp // LEVEL_XP_FACTOR)


def xp_to_next_level(level: int, xp: int) -> int:
    return xp_for_level(level + 1) - xp


def level_progress(xp: int) -> dict[str, float | int]:
    """Progress breakdown for a total XP value, as shown on profile pages."""
    xp = max(0, xp)
    level = level_from_xp(xp)
    current_level_xp = xp_for_level(level)
    next_level_xp = xp_for_level(level + 1)
    xp_in_current_level = xp - current_level_xp
    span = next_level_xp - current_level_xp
    return {
        "level": level,
        "total_xp": xp,
        "current_level_xp": current_level_xp,
        "next_level_xp": next_level_xp,
        "xp_in_current_level": xp_in_current_level,
        "xp_needed_for_next_level": next_level_xp - xp,
        "progress_percent": round(xp_in_current_level / span * 100, 2),
    }
