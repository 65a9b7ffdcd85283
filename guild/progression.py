"""Progression updates for The Adventurers Guild.

Applies quest XP and skill point awards and keeps the cached rank column in
step with XP.
"""

import logging
from datetime import datetime, UTC

from guild.analytics import send_rank_up_metric
from guild.database import (
    PersistenceError,
    get_adventurer,
    update_adventurer_progress,
    update_adventurer_rank
)
from guild.ranks import (
    MAX_SKILL_LEVEL,
    SKILL_POINTS_PER_LEVEL,
    InvalidXPError,
    calculate_level,
    calculate_skill_level,
    rank_for_xp,
    rank_value
)

logger = logging.getLogger(__name__)


def _report_rank_change(user_id: str, previous_rank: str | None, new_rank: str,
                        datadog_api_key: str | None) -> None:
    logger.info(f"Adventurer {user_id} rank changed: {previous_rank} -> {new_rank}")

    # Only a real promotion counts as a rank-up; blank cells and downgrades do not
    if previous_rank is None or rank_value(new_rank) <= rank_value(previous_rank):
        return

    if datadog_api_key:
        send_rank_up_metric(previous_rank, new_rank, datadog_api_key)


def _check_skill_rewards(skill_rewards: dict) -> None:
    for skill, points in skill_rewards.items():
        if not str(skill).strip():
            raise ValueError("Skill reward names must not be blank")
        if isinstance(points, bool) or not isinstance(points, int) or points < 0:
            raise ValueError(f"Skill reward for '{skill}' must be a non-negative integer (got {points!r})")


def apply_skill_rewards(skill_levels: dict, skill_experience: dict, skill_rewards: dict,
                        points_per_level: int = SKILL_POINTS_PER_LEVEL,
                        max_level: int = MAX_SKILL_LEVEL) -> tuple[dict, dict]:
    """Add skill point rewards and recompute each rewarded skill's level.

    Skills are matched case-insensitively, so a "React" reward lands on an
    existing "react" entry. A skill with a level but no recorded points is
    assumed to hold the minimum points for that level.

    Args:
        skill_levels: Current skill -> level mapping
        skill_experience: Current skill -> points mapping (may be partial)
        skill_rewards: Skill -> points to add
        points_per_level: Points required per skill level
        max_level: Level cap for every skill

    Returns:
        (new_levels, new_experience); the inputs are not modified

    Raises:
        ValueError: If a reward is blank, negative or not an integer
    """
    _check_skill_rewards(skill_rewards)

    levels = dict(skill_levels)
    experience = dict(skill_experience)
    known = {skill.lower(): skill for skill in levels}

    for reward_skill, points in skill_rewards.items():
        skill = known.setdefault(reward_skill.strip().lower(), reward_skill.strip())
        current = experience.get(skill, levels.get(skill, 0) * points_per_level)
        experience[skill] = current + points
        levels[skill] = calculate_skill_level(experience[skill], points_per_level, max_level)

    return levels, experience


def award_quest_xp(user_id: str, xp_reward: int, sheets_client,
                   datadog_api_key: str | None = None,
                   skill_rewards: dict | None = None) -> dict:
    """Add a quest's XP and skill point rewards to an adventurer and persist the result.

    A single award may skip several ranks (F straight to C is fine).

    Args:
        user_id: The adventurer's unique identifier
        xp_reward: XP to add (non-negative)
        sheets_client: Adventurers worksheet (gspread worksheet object)
        datadog_api_key: Datadog API key; rank-up metrics are skipped if None
        skill_rewards: Optional skill -> points awarded by the quest

    Returns:
        {'xp', 'rank', 'previous_rank', 'level', 'has_rank_changed',
         'skill_points', 'skill_progress'}

    Raises:
        InvalidXPError: If xp_reward is negative or not a number
        ValueError: If a skill reward is negative or not an integer
        PersistenceError: If the adventurer is missing or the write fails
        RateLimitError: If rate limit is exceeded while reading
    """
    if isinstance(xp_reward, bool) or not isinstance(xp_reward, int) or xp_reward < 0:
        raise InvalidXPError(f"XP reward must be a non-negative integer (got {xp_reward!r})")
    if skill_rewards:
        _check_skill_rewards(skill_rewards)

    adventurer = get_adventurer(user_id, sheets_client)
    if adventurer is None:
        raise PersistenceError(f"Adventurer '{user_id}' not found")

    previous_rank = adventurer['rank']
    new_xp = adventurer['xp'] + xp_reward
    new_rank = rank_for_xp(new_xp)

    progress_data = {
        'xp': new_xp,
        'rank': new_rank,
        'timestamp': datetime.now(UTC).isoformat().replace('+00:00', 'Z')
    }

    skill_points = adventurer['skill_points']
    skill_progress = adventurer['skill_progress']
    if skill_rewards:
        skill_points += sum(skill_rewards.values())
        skill_progress, skill_experience = apply_skill_rewards(
            skill_progress, adventurer['skill_experience'], skill_rewards
        )
        progress_data.update({
            'skill_points': skill_points,
            'skill_progress': skill_progress,
            'skill_experience': skill_experience
        })

    if not update_adventurer_progress(user_id, progress_data, sheets_client):
        raise PersistenceError(f"Failed to save progress for adventurer '{user_id}'")

    has_rank_changed = new_rank != previous_rank
    if has_rank_changed:
        _report_rank_change(user_id, previous_rank, new_rank, datadog_api_key)

    return {
        'xp': new_xp,
        'rank': new_rank,
        'previous_rank': previous_rank,
        'level': calculate_level(new_xp),
        'has_rank_changed': has_rank_changed,
        'skill_points': skill_points,
        'skill_progress': skill_progress
    }


def sync_adventurer_rank(user_id: str, sheets_client,
                         datadog_api_key: str | None = None) -> dict:
    """Recompute an adventurer's rank from XP and fix a stale Rank column.

    The sheet is only written when the stored label differs from the
    XP-derived one. The rank-up metric is sent only when the stored label
    was a lower rank; filling a blank cell or correcting a label that was
    too high is logged but not counted.

    Returns:
        {'rank', 'previous_rank', 'xp', 'has_rank_changed'}

    Raises:
        PersistenceError: If the adventurer is missing or the write fails
        RateLimitError: If rate limit is exceeded after retries
    """
    adventurer = get_adventurer(user_id, sheets_client)
    if adventurer is None:
        raise PersistenceError(f"Adventurer '{user_id}' not found")

    previous_rank = adventurer['stored_rank']
    new_rank = adventurer['rank']
    has_rank_changed = new_rank != previous_rank

    if has_rank_changed:
        if not update_adventurer_rank(user_id, new_rank, sheets_client):
            raise PersistenceError(f"Adventurer '{user_id}' not found")
        _report_rank_change(user_id, previous_rank, new_rank, datadog_api_key)

    return {
        'rank': new_rank,
        'previous_rank': previous_rank,
        'xp': adventurer['xp'],
        'has_rank_changed': has_rank_changed
    }
