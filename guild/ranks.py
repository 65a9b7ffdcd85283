"""Rank and progression logic for The Adventurers Guild.

This module derives an adventurer's rank, next-rank threshold and progress
from their total XP, plus the level and skill-level arithmetic used on
profile pages. Everything here is pure: no I/O, no shared mutable state.
"""

import math
from types import MappingProxyType
from typing import NamedTuple


class InvalidXPError(ValueError):
    """Raised when an XP value is negative, non-finite or not a number."""
    pass


class RankThreshold(NamedTuple):
    rank: str
    threshold: int


class NextRank(NamedTuple):
    current_rank: str
    next_rank_xp: int


# XP required to reach each rank, ascending
RANK_THRESHOLDS = (
    RankThreshold("F", 0),
    RankThreshold("E", 1000),
    RankThreshold("D", 3000),
    RankThreshold("C", 6000),
    RankThreshold("B", 10000),
    RankThreshold("A", 15000),
    RankThreshold("S", 25000),
)

RANKS = tuple(entry.rank for entry in RANK_THRESHOLDS)
MAX_RANK = RANKS[-1]

RANK_VALUES = MappingProxyType({rank: index for index, rank in enumerate(RANKS)})

XP_PER_LEVEL = 1000

# Default per-skill progression when a quest awards skill points
SKILL_POINTS_PER_LEVEL = 100
MAX_SKILL_LEVEL = 5


def _check_xp(xp) -> None:
    if isinstance(xp, bool) or not isinstance(xp, (int, float)):
        raise InvalidXPError(f"XP must be a number (got {xp!r})")
    if not math.isfinite(xp):
        raise InvalidXPError(f"XP must be finite (got {xp!r})")
    if xp < 0:
        raise InvalidXPError(f"XP cannot be negative (got {xp})")


def rank_value(rank: str | None) -> int:
    """Return the ordinal of a rank label (F=0 .. S=6).

    Unknown or missing labels count as the lowest rank.
    """
    return RANK_VALUES.get(rank, 0)


def rank_for_xp(xp: int) -> str:
    """Get the rank label for a given XP total.

    Args:
        xp: Total experience points (non-negative)

    Returns:
        The label of the highest threshold not exceeding xp

    Raises:
        InvalidXPError: If xp is negative, non-finite or not a number

    Example:
        >>> rank_for_xp(9999)
        'C'
        >>> rank_for_xp(10000)
        'B'
    """
    _check_xp(xp)
    for entry in reversed(RANK_THRESHOLDS):
        if xp >= entry.threshold:
            return entry.rank
    return RANKS[0]


def next_rank_threshold(xp: int) -> NextRank:
    """Get the current rank and the XP needed to reach the next one.

    Args:
        xp: Total experience points (non-negative)

    Returns:
        NextRank(current_rank, next_rank_xp). next_rank_xp is -1 when the
        current rank is already S.

    Raises:
        InvalidXPError: If xp is negative, non-finite or not a number
    """
    current_rank = rank_for_xp(xp)
    index = RANK_VALUES[current_rank]
    if index + 1 < len(RANK_THRESHOLDS):
        return NextRank(current_rank, RANK_THRESHOLDS[index + 1].threshold)
    return NextRank(current_rank, -1)


def rank_progress_percent(xp: int) -> float:
    """Calculate percentage progress toward the next rank.

    Args:
        xp: Total experience points (non-negative)

    Returns:
        Progress in [0.0, 100.0]; always 100.0 at S rank

    Raises:
        InvalidXPError: If xp is negative, non-finite or not a number
    """
    current_rank, next_rank_xp = next_rank_threshold(xp)
    if current_rank == MAX_RANK:
        return 100.0

    current_threshold = RANK_THRESHOLDS[RANK_VALUES[current_rank]].threshold
    progress = (xp - current_threshold) / (next_rank_xp - current_threshold) * 100
    return min(100.0, max(0.0, progress))


def xp_to_next_rank(xp: int) -> int:
    """Return the XP still needed for the next rank (0 at S rank)."""
    _, next_rank_xp = next_rank_threshold(xp)
    if next_rank_xp < 0:
        return 0
    return math.ceil(next_rank_xp - xp)


def calculate_level(xp: int) -> int:
    """Calculate level from XP.

    New adventurers start at level 1 and gain a level every XP_PER_LEVEL XP.

    Args:
        xp: Total experience points

    Returns:
        Level calculated as 1 + XP // XP_PER_LEVEL

    Raises:
        InvalidXPError: If xp is negative, non-finite or not a number
    """
    _check_xp(xp)
    return 1 + int(xp // XP_PER_LEVEL)


def calculate_skill_level(skill_points: int, points_per_level: int, max_level: int) -> int:
    """Calculate the level of a single skill from its accumulated points.

    Args:
        skill_points: Points earned in the skill
        points_per_level: Points required per level (must be positive)
        max_level: Level cap for the skill

    Returns:
        skill_points // points_per_level, capped at max_level
    """
    if points_per_level <= 0:
        raise ValueError(f"points_per_level must be positive (got {points_per_level})")
    return min(max(0, skill_points // points_per_level), max_level)
