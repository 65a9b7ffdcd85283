"""Leaderboard helpers for The Adventurers Guild.

Rank filtering always uses the rank derived from XP, never a stored label.
"""

from typing import Iterable

from guild.ranks import rank_for_xp

SORT_FIELDS = ("xp", "level", "skill_points")


def build_leaderboard(
    adventurers: Iterable[dict],
    sort_by: str = "xp",
    order: str = "desc",
    limit: int = 20,
    offset: int = 0,
    rank: str | None = None
) -> list:
    """Order adventurers into a leaderboard page.

    Args:
        adventurers: Adventurer dicts (need 'xp', 'level', 'skill_points')
        sort_by: One of 'xp', 'level', 'skill_points'; anything else sorts by xp
        order: 'asc' or 'desc'
        limit: Page size
        offset: Number of entries to skip
        rank: Only include adventurers whose XP-derived rank equals this label

    Returns:
        Copies of the adventurer dicts with a 1-based 'position' key
    """
    if sort_by not in SORT_FIELDS:
        sort_by = "xp"

    entries = list(adventurers)
    if rank:
        entries = [entry for entry in entries if rank_for_xp(entry.get("xp", 0)) == rank]

    entries.sort(key=lambda entry: entry.get(sort_by) or 0, reverse=(order != "asc"))
    page = entries[offset:offset + limit]
    return [dict(entry, position=offset + index + 1) for index, entry in enumerate(page)]


def leaderboard_position(user_id: str, adventurers: Iterable[dict]) -> dict | None:
    """Find an adventurer's position on the XP leaderboard.

    Position is one more than the number of adventurers with strictly more
    XP, so adventurers tied on XP share a position.

    Returns:
        {'position': int, 'total_users': int}, or None if user_id is unknown
    """
    adventurers = list(adventurers)
    user = next((entry for entry in adventurers if entry.get("user_id") == user_id), None)
    if user is None:
        return None

    user_xp = user.get("xp", 0)
    higher = sum(1 for entry in adventurers if entry.get("xp", 0) > user_xp)
    return {"position": higher + 1, "total_users": len(adventurers)}
