"""Quest matching and recommendation scoring for The Adventurers Guild.

The match score is a 0-100 suitability value between an adventurer and a
quest, used only to order the quest board. It is the sum of five
independent sub-scores:

- Rank compatibility (0-25)
- Skill overlap (0-35)
- Category alignment (0-20)
- Completion-rate bonus (0-20)
- Reward attractiveness (0-10)

Every optional user or quest field may be missing; a missing field simply
contributes its zero (or neutral) share instead of raising.
"""

import math
from collections import Counter
from types import MappingProxyType
from typing import Iterable, Tuple

from guild.ranks import rank_value

RANK_MATCH_POINTS = 25
RANK_GAP_PENALTY = 5
SKILL_MATCH_POINTS = 35
CATEGORY_MATCH_POINTS = 20
RELATED_CATEGORY_POINTS = 10
COMPLETION_RATE_POINTS = 20
MAX_REWARD_POINTS = 10

# Monetary rewards are converted to an XP-equivalent scale
MONETARY_TO_XP = 100
REWARD_SCALE = 250

MAX_MATCH_SCORE = 100

# Categories that earn partial credit for a given specialization
RELATED_CATEGORIES = MappingProxyType({
    "frontend": frozenset({"fullstack", "design"}),
    "backend": frozenset({"fullstack", "devops"}),
    "fullstack": frozenset({"frontend", "backend"}),
    "mobile": frozenset({"frontend"}),
    "devops": frozenset({"backend"}),
    "qa": frozenset({"backend", "frontend"}),
})


def _user_skills(user: dict) -> list:
    """Union of primary skills and skill-progress keys, lowercased."""
    skills = list(user.get("primary_skills") or [])
    skills.extend((user.get("skill_progress") or {}).keys())
    return [skill.strip().lower() for skill in skills if skill and skill.strip()]


def _skill_matches(required: str, user_skills: list) -> bool:
    required = required.strip().lower()
    if not required:
        return False
    return any(required in skill or skill in required for skill in user_skills)


def _count_matching_skills(user: dict, required_skills: Iterable[str]) -> int:
    user_skills = _user_skills(user)
    return sum(1 for skill in required_skills if _skill_matches(skill, user_skills))


def rank_compatibility_score(user_rank: str | None, quest_difficulty: str | None) -> int:
    """Score how well the adventurer's rank fits the quest difficulty.

    Args:
        user_rank: Adventurer rank label
        quest_difficulty: Quest difficulty as a rank label

    Returns:
        25 on an exact match, 25 - 5 per rank above (floored at 0) when
        overqualified, 0 when underqualified
    """
    gap = rank_value(user_rank) - rank_value(quest_difficulty)
    if gap < 0:
        return 0
    return max(0, RANK_MATCH_POINTS - gap * RANK_GAP_PENALTY)


def skill_overlap_score(user: dict, required_skills: list | None) -> float:
    """Score the share of required skills the adventurer has (0-35).

    A required skill counts as matched when it and one of the user's skills
    contain each other, case-insensitively. Quests with no required skills
    get the full 35 points.
    """
    if not required_skills:
        return float(SKILL_MATCH_POINTS)
    matched = _count_matching_skills(user, required_skills)
    return SKILL_MATCH_POINTS * matched / len(required_skills)


def category_alignment_score(specialization: str | None, quest_category: str | None) -> int:
    """Score 20 for the same category, 10 for a related one, else 0."""
    if not specialization or not quest_category:
        return 0
    specialization = specialization.strip().lower()
    quest_category = quest_category.strip().lower()
    if specialization == quest_category:
        return CATEGORY_MATCH_POINTS
    if quest_category in RELATED_CATEGORIES.get(specialization, ()):
        return RELATED_CATEGORY_POINTS
    return 0


def _finite(value) -> float:
    """Missing, NaN and infinite values count as 0."""
    if value is None or not math.isfinite(value):
        return 0.0
    return value


def completion_rate_score(quest_completion_rate: float | None) -> float:
    """Scale a 0-100 completion rate to 0-20 points; absent or non-finite counts as 0."""
    quest_completion_rate = _finite(quest_completion_rate)
    return COMPLETION_RATE_POINTS * quest_completion_rate / 100


def reward_score(xp_reward: float | None, monetary_reward: float | None = None) -> float:
    """Score reward attractiveness (0-10).

    The reward proxy averages the XP reward with the monetary reward
    converted at 100 XP per currency unit, then scales it down by 250.
    """
    avg_reward = (_finite(xp_reward) + _finite(monetary_reward) * MONETARY_TO_XP) / 2
    return min(float(MAX_REWARD_POINTS), avg_reward / REWARD_SCALE)


def calculate_match_score(user: dict, quest: dict) -> int:
    """Calculate the match score between an adventurer and a quest.

    Args:
        user: Adventurer profile dict. Reads 'rank', 'primary_skills',
            'specialization', 'quest_completion_rate' and 'skill_progress'.
        quest: Quest dict. Reads 'difficulty', 'required_skills',
            'quest_category', 'xp_reward' and 'monetary_reward'.

    Returns:
        Integer score in [0, 100]. The raw sum can reach 110 when the reward
        bonus lands on top of four maxed sub-scores; it is clamped to 100.

    Example:
        >>> user = {'rank': 'C', 'primary_skills': ['React'],
        ...         'specialization': 'frontend', 'quest_completion_rate': 100}
        >>> quest = {'difficulty': 'C', 'required_skills': ['react'],
        ...          'quest_category': 'frontend', 'xp_reward': 0}
        >>> calculate_match_score(user, quest)
        100
    """
    total = (
        rank_compatibility_score(user.get("rank"), quest.get("difficulty"))
        + skill_overlap_score(user, quest.get("required_skills"))
        + category_alignment_score(user.get("specialization"), quest.get("quest_category"))
        + completion_rate_score(user.get("quest_completion_rate"))
        + reward_score(quest.get("xp_reward"), quest.get("monetary_reward"))
    )
    # round half up
    score = math.floor(total + 0.5)
    return min(MAX_MATCH_SCORE, max(0, score))


def rank_quests(user: dict, quests: Iterable[dict], limit: int = 10) -> list:
    """Score and order quests for the quest board.

    Args:
        user: Adventurer profile dict
        quests: Available quest dicts
        limit: Maximum number of quests to return

    Returns:
        Copies of the quests with a 'match_score' key, best first. Equal
        scores keep the newest quest (by 'created_at') first.
    """
    scored = [dict(quest, match_score=calculate_match_score(user, quest)) for quest in quests]
    scored.sort(key=lambda quest: quest.get("created_at") or "", reverse=True)
    scored.sort(key=lambda quest: quest["match_score"], reverse=True)
    return scored[:limit]


def summarize_completed_quests(completed_quests: Iterable[dict]) -> Tuple[Counter, Counter]:
    """Count categories and required skills across completed quests.

    Args:
        completed_quests: Quest dicts the adventurer has already completed

    Returns:
        Tuple of (category_counts, skill_counts)
    """
    category_counts = Counter()
    skill_counts = Counter()
    for quest in completed_quests:
        if quest.get("quest_category"):
            category_counts[quest["quest_category"]] += 1
        skill_counts.update(quest.get("required_skills") or [])
    return category_counts, skill_counts


def recommendation_score(user: dict, quest: dict, category_counts: Counter) -> float:
    """Score a quest against the adventurer's completion history.

    Unlike the match score this is unbounded: it rewards categories the
    adventurer keeps coming back to, matching skills, a suitable rank and
    raw reward size.
    """
    score = category_counts.get(quest.get("quest_category"), 0) * 10.0
    score += _count_matching_skills(user, quest.get("required_skills") or []) * 5

    gap = rank_value(user.get("rank")) - rank_value(quest.get("difficulty"))
    if gap >= 0:
        score += 20 - gap * 3

    score += _finite(quest.get("xp_reward")) / 100
    score += _finite(quest.get("monetary_reward")) / 10
    return score


def recommend_quests(
    user: dict,
    quests: Iterable[dict],
    completed_quests: Iterable[dict] = (),
    num_recommendations: int = 5
) -> list:
    """Recommend quests based on what the adventurer has completed before.

    Returns:
        Copies of the quests with a 'recommendation_score' key, best first,
        at most num_recommendations long
    """
    category_counts, _ = summarize_completed_quests(completed_quests)
    recommended = [
        dict(quest, recommendation_score=recommendation_score(user, quest, category_counts))
        for quest in quests
    ]
    recommended.sort(key=lambda quest: quest["recommendation_score"], reverse=True)
    return recommended[:num_recommendations]
