"""
Database layer for The Adventurers Guild.

Reads adventurer and quest records from Google Sheets worksheets and writes
back progression updates, with retry logic for rate limits.
"""

import math
import time
from typing import Callable, Any

from guild.ranks import calculate_level, rank_for_xp

ADVENTURERS_WORKSHEET = "Adventurers"
QUESTS_WORKSHEET = "Quests"
COMPLETIONS_WORKSHEET = "Completions"

# 1-indexed columns of the Adventurers worksheet
RANK_COL = 3
XP_COL = 4
SKILL_POINTS_COL = 5
SKILL_PROGRESS_COL = 9
TIMESTAMP_COL = 10


class RateLimitError(Exception):
    """Raised when Google Sheets API returns a rate limit error."""
    pass


class PersistenceError(Exception):
    """Raised when Google Sheets operations fail."""
    pass


def retry_with_backoff(func: Callable, max_attempts: int = 3) -> Any:
    """
    Retry a function with exponential backoff for rate limit errors.

    Waits 1s, 2s, 4s, ... between attempts.

    Args:
        func: The function to retry (should be a callable with no arguments)
        max_attempts: Maximum number of attempts (default: 3)

    Returns:
        The return value of the successful function call

    Raises:
        RateLimitError: If all attempts fail with rate limit errors
        PersistenceError: If the function fails with a non-rate-limit error

    Example:
        >>> records = retry_with_backoff(lambda: worksheet.get_all_records())
    """
    for attempt in range(max_attempts):
        try:
            return func()
        except (RateLimitError, PersistenceError):
            # Already classified; do not retry
            raise
        except Exception as e:
            # Check if this is a rate limit error
            error_msg = str(e).lower()
            is_rate_limit = ('rate limit' in error_msg or
                             'quota' in error_msg or
                             '429' in error_msg)

            if not is_rate_limit:
                # Non-rate-limit error - raise immediately
                raise PersistenceError(f"Database operation failed: {e}") from e

            if attempt == max_attempts - 1:
                # Last attempt failed
                raise RateLimitError(f"Rate limit exceeded after {max_attempts} attempts") from e

            # Wait with exponential backoff: 1s, 2s, 4s
            time.sleep(2 ** attempt)

    raise RateLimitError(f"Rate limit exceeded after {max_attempts} attempts")


def _to_float(value) -> float | None:
    """Parse a sheet cell as a finite float; blank, malformed, inf and nan give None."""
    if value is None or isinstance(value, bool) or str(value).strip() == '':
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    # "inf", "nan" and "1e999" all parse, but none of them is a usable count
    if not math.isfinite(number):
        return None
    return number


def _to_int(value, default: int = 0) -> int:
    number = _to_float(value)
    if number is None:
        return default
    return int(number)

def _split_list(value) -> list:
    """Split a comma separated cell ("react, node") into a list."""
    if not value:
        return []
    return [item.strip() for item in str(value).split(',') if item.strip()]


def _parse_skill_progress(value) -> tuple[dict, dict]:
    """
    Parse a Skill_Progress cell.

    Entries are "skill:level" or "skill:level:points", so
    "react:3:350, node:2" gives levels {'react': 3, 'node': 2} and
    points {'react': 350}.
    """
    levels = {}
    points = {}
    for item in _split_list(value):
        skill, _, rest = item.partition(':')
        skill = skill.strip()
        if not skill:
            continue
        level, _, earned = rest.partition(':')
        levels[skill] = max(0, _to_int(level))
        if earned.strip():
            points[skill] = max(0, _to_int(earned))
    return levels, points


def format_skill_progress(levels: dict, points: dict | None = None) -> str:
    """Inverse of the Skill_Progress parser: {'react': 3}, {'react': 350} -> "react:3:350"."""
    points = points or {}
    entries = []
    for skill, level in levels.items():
        if skill in points:
            entries.append(f"{skill}:{level}:{points[skill]}")
        else:
            entries.append(f"{skill}:{level}")
    return ', '.join(entries)


def _adventurer_from_record(record: dict) -> dict:
    """
    Convert an Adventurers sheet row into an adventurer dict.

    'rank' is always recomputed from XP; the sheet's Rank column is only a
    cached display value and is kept as 'stored_rank'.
    """
    xp = max(0, _to_int(record.get('XP')))
    skill_levels, skill_experience = _parse_skill_progress(record.get('Skill_Progress'))
    return {
        'user_id': str(record.get('User_ID')),
        'name': record.get('Name', ''),
        'rank': rank_for_xp(xp),
        'stored_rank': record.get('Rank') or None,
        'xp': xp,
        'skill_points': max(0, _to_int(record.get('Skill_Points'))),
        'level': calculate_level(xp),
        'specialization': record.get('Specialization') or None,
        'primary_skills': _split_list(record.get('Primary_Skills')),
        'quest_completion_rate': _to_float(record.get('Quest_Completion_Rate')),
        'skill_progress': skill_levels,
        'skill_experience': skill_experience,
        'timestamp': record.get('Timestamp', '')
    }


def _quest_from_record(record: dict) -> dict:
    return {
        'quest_id': str(record.get('Quest_ID')),
        'title': record.get('Title', ''),
        'status': record.get('Status', ''),
        'difficulty': record.get('Difficulty') or 'F',
        'xp_reward': max(0, _to_int(record.get('XP_Reward'))),
        'monetary_reward': _to_float(record.get('Monetary_Reward')),
        'required_skills': _split_list(record.get('Required_Skills')),
        'quest_category': record.get('Quest_Category', ''),
        'created_at': record.get('Created_At', '')
    }


def _find_row(records: list, user_id: str) -> int | None:
    """Return the sheet row number for user_id (header is row 1)."""
    for idx, record in enumerate(records):
        if str(record.get('User_ID')) == user_id:
            return idx + 2
    return None


def get_adventurer(user_id: str, sheets_client) -> dict | None:
    """
    Fetch one adventurer from the Adventurers worksheet.

    Args:
        user_id: The adventurer's unique identifier
        sheets_client: Adventurers worksheet (gspread worksheet object)

    Returns:
        Adventurer dict if found, None otherwise

    Adventurer dict structure:
        {
            'user_id': str,
            'name': str,
            'rank': str,                # derived from xp
            'stored_rank': str | None,  # cached sheet value
            'xp': int,
            'skill_points': int,
            'level': int,
            'specialization': str | None,
            'primary_skills': list[str],
            'quest_completion_rate': float | None,
            'skill_progress': dict[str, int],    # skill -> level
            'skill_experience': dict[str, int],  # skill -> points, when recorded
            'timestamp': str
        }

    Raises:
        PersistenceError: If database operation fails
        RateLimitError: If rate limit is exceeded after retries
    """
    def _get_adventurer():
        # Get all records and find the adventurer by id
        # (Sheets returns numeric ids as ints, so compare as strings)
        for record in sheets_client.get_all_records():
            if str(record.get('User_ID')) == user_id:
                return _adventurer_from_record(record)

        # Adventurer not found
        return None

    return retry_with_backoff(_get_adventurer)


def list_adventurers(sheets_client) -> list:
    """
    Fetch every adventurer from the Adventurers worksheet.

    Raises:
        PersistenceError: If database operation fails
        RateLimitError: If rate limit is exceeded after retries
    """
    def _list_adventurers():
        return [_adventurer_from_record(record) for record in sheets_client.get_all_records()]

    return retry_with_backoff(_list_adventurers)


def list_available_quests(sheets_client, limit: int = 20) -> list:
    """
    Fetch quests whose status is 'available' from the Quests worksheet.

    Args:
        sheets_client: Quests worksheet (gspread worksheet object)
        limit: Maximum number of quests to return

    Returns:
        List of quest dicts in sheet order

    Raises:
        PersistenceError: If database operation fails
        RateLimitError: If rate limit is exceeded after retries
    """
    def _list_quests():
        quests = []
        for record in sheets_client.get_all_records():
            # Skip claimed, completed and draft quests
            if str(record.get('Status', '')).lower() != 'available':
                continue
            quests.append(_quest_from_record(record))
            if len(quests) >= limit:
                break
        return quests

    return retry_with_backoff(_list_quests)


def list_completed_quests(user_id: str, completions_client, quests_client, limit: int = 10) -> list:
    """
    Fetch the quests an adventurer has completed, most recent last.

    Args:
        user_id: The adventurer's unique identifier
        completions_client: Completions worksheet (User_ID, Quest_ID, Completed_At)
        quests_client: Quests worksheet
        limit: Only the latest `limit` completions are returned

    Returns:
        List of quest dicts; completions pointing at unknown quests are skipped

    Raises:
        PersistenceError: If database operation fails
        RateLimitError: If rate limit is exceeded after retries
    """
    def _list_completed():
        # Latest completion ids for this adventurer, oldest first
        quest_ids = [
            str(record.get('Quest_ID'))
            for record in completions_client.get_all_records()
            if str(record.get('User_ID')) == user_id
        ][-limit:]

        # Index the quests sheet so each completion resolves in one pass
        quests = {
            str(record.get('Quest_ID')): _quest_from_record(record)
            for record in quests_client.get_all_records()
        }
        return [quests[quest_id] for quest_id in quest_ids if quest_id in quests]

    return retry_with_backoff(_list_completed)


def update_adventurer_progress(user_id: str, progress_data: dict, sheets_client) -> bool:
    """
    Write an adventurer's new XP, rank and timestamp, plus skill progress when given.

    Args:
        user_id: The adventurer's unique identifier
        progress_data: Dict containing
            {
                'xp': int,                  # New XP total
                'rank': str,                # Rank derived from the new XP
                'timestamp': str,           # ISO8601 timestamp
                'skill_points': int,        # Optional: new Skill_Points total
                'skill_progress': dict,     # Optional: skill -> level
                'skill_experience': dict    # Optional: skill -> points
            }
            The Skill_Points and Skill_Progress columns are only written when
            'skill_progress' is present.
        sheets_client: Adventurers worksheet (gspread worksheet object)

    Returns:
        True on success, False on failure
    """
    def _update_progress():
        # Find the adventurer's row (add 2 for header row and 1-indexing)
        row_num = _find_row(sheets_client.get_all_records(), user_id)
        if row_num is None:
            raise PersistenceError(f"Adventurer '{user_id}' not found")

        # Update XP (column D)
        sheets_client.update_cell(row_num, XP_COL, progress_data['xp'])

        # Update Rank (column C)
        sheets_client.update_cell(row_num, RANK_COL, progress_data['rank'])

        if 'skill_progress' in progress_data:
            # Update Skill_Points (column E) and Skill_Progress (column I)
            sheets_client.update_cell(row_num, SKILL_POINTS_COL, progress_data['skill_points'])
            sheets_client.update_cell(
                row_num,
                SKILL_PROGRESS_COL,
                format_skill_progress(progress_data['skill_progress'],
                                      progress_data.get('skill_experience'))
            )

        # Update Timestamp (column J)
        sheets_client.update_cell(row_num, TIMESTAMP_COL, progress_data['timestamp'])
        return True

    try:
        return retry_with_backoff(_update_progress)
    except (PersistenceError, RateLimitError):
        return False


def update_adventurer_rank(user_id: str, rank: str, sheets_client) -> bool:
    """
    Rewrite the cached Rank column for one adventurer.

    Args:
        user_id: The adventurer's unique identifier
        rank: The rank label to store
        sheets_client: Adventurers worksheet (gspread worksheet object)

    Returns:
        True if the rank was written, False if the adventurer was not found

    Raises:
        PersistenceError: If database operation fails
        RateLimitError: If rate limit is exceeded after retries
    """
    def _update_rank():
        # Find the adventurer's row
        row_num = _find_row(sheets_client.get_all_records(), user_id)
        if row_num is None:
            # Adventurer not found
            return False

        # Update Rank (column C)
        sheets_client.update_cell(row_num, RANK_COL, rank)
        return True

    return retry_with_backoff(_update_rank)
