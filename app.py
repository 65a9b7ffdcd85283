"""
The Adventurers Guild - Progression Dashboard (Streamlit)

Shows an adventurer's rank and progress, the quest board ordered by match
score, history-based recommendations and the guild leaderboard.
"""

import logging

import streamlit as st

from guild.database import (
    ADVENTURERS_WORKSHEET,
    COMPLETIONS_WORKSHEET,
    QUESTS_WORKSHEET,
    PersistenceError,
    RateLimitError,
    get_adventurer,
    list_adventurers,
    list_available_quests,
    list_completed_quests
)
from guild.matching import rank_quests, recommend_quests, summarize_completed_quests
from guild.progression import sync_adventurer_rank
from guild.rankings import build_leaderboard, leaderboard_position
from guild.ui_components import (
    render_leaderboard,
    render_quest_matches,
    render_rank_card,
    render_rank_table,
    render_recommendations,
    render_sidebar_lookup
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Page configuration
st.set_page_config(
    page_title="The Adventurers Guild",
    page_icon="🛡️",
    layout="wide"
)

QUEST_BOARD_SIZE = 10
AVAILABLE_QUEST_LIMIT = 50


def initialize_session_state():
    """Initialize Streamlit session state with default values.

    Session state fields:
    - user_id: str | None - Adventurer currently on screen
    """
    if "user_id" not in st.session_state:
        st.session_state.user_id = None


def get_worksheets():
    """Open the guild worksheets from Streamlit secrets.

    Returns:
        Dict of gspread worksheet objects keyed by worksheet name

    Raises:
        Exception: If secrets are not configured or connection fails
    """
    try:
        import gspread
        from google.oauth2.service_account import Credentials

        credentials = Credentials.from_service_account_info(
            st.secrets["gcp_service_account"],
            scopes=[
                "https://www.googleapis.com/auth/spreadsheets",
                "https://www.googleapis.com/auth/drive"
            ]
        )

        client = gspread.authorize(credentials)
        spreadsheet = client.open_by_key(st.secrets["google_sheets_id"])

        return {
            name: spreadsheet.worksheet(name)
            for name in (ADVENTURERS_WORKSHEET, QUESTS_WORKSHEET, COMPLETIONS_WORKSHEET)
        }

    except Exception as e:
        logger.error(f"Failed to connect to Google Sheets: {e}")
        raise


def get_datadog_api_key():
    """Load the optional Datadog API key from Streamlit secrets.

    Returns:
        str | None: Datadog API key, or None when metrics are disabled
    """
    return st.secrets.get("datadog_api_key")


def handle_lookup():
    """Move a submitted adventurer id from the sidebar form into session state."""
    if "lookup_submission" in st.session_state:
        user_id = st.session_state["lookup_submission"].strip()
        del st.session_state["lookup_submission"]

        if not user_id:
            st.sidebar.error("Please enter an adventurer ID")
            return

        st.session_state.user_id = user_id
        st.rerun()


def handle_rank_sync(user_id: str, worksheets: dict, datadog_api_key):
    """Rewrite a stale stored rank from the adventurer's XP."""
    try:
        result = sync_adventurer_rank(user_id, worksheets[ADVENTURERS_WORKSHEET], datadog_api_key)
    except RateLimitError as e:
        st.sidebar.error("System is busy. Please wait a moment and try again.")
        logger.error(f"Rank sync rate limited for {user_id}: {e}")
        return
    except PersistenceError as e:
        st.sidebar.error("Unable to update rank. Please try again.")
        logger.error(f"Rank sync failed for {user_id}: {e}")
        return

    if result["has_rank_changed"]:
        st.sidebar.success(f"Rank updated: {result['previous_rank']} → {result['rank']}")
    else:
        st.sidebar.info(f"Rank {result['rank']} is already up to date")


def render_dashboard(user_id: str, worksheets: dict, datadog_api_key):
    """Load an adventurer's data and render every dashboard tab."""
    adventurers_sheet = worksheets[ADVENTURERS_WORKSHEET]
    quests_sheet = worksheets[QUESTS_WORKSHEET]

    # Rank sync runs before the profile is loaded
    if st.sidebar.button("Sync rank"):
        handle_rank_sync(user_id, worksheets, datadog_api_key)

    try:
        adventurer = get_adventurer(user_id, adventurers_sheet)
        if adventurer is None:
            st.warning(f"No adventurer found with ID '{user_id}'")
            return

        quests = list_available_quests(quests_sheet, limit=AVAILABLE_QUEST_LIMIT)
        completed = list_completed_quests(user_id, worksheets[COMPLETIONS_WORKSHEET], quests_sheet)
        adventurers = list_adventurers(adventurers_sheet)

    except RateLimitError as e:
        st.error("System is busy. Please wait a moment and try again.")
        logger.error(f"Rate limited loading dashboard for {user_id}: {e}")
        return
    except PersistenceError as e:
        st.error("Unable to connect to database. Please try again.")
        logger.error(f"Failed to load dashboard for {user_id}: {e}")
        return

    tabs = st.tabs(["🛡️ Profile", "⚔️ Quest Board", "✨ Recommended", "🏆 Rankings"])

    with tabs[0]:
        render_rank_card(adventurer)
        st.divider()
        render_rank_table()

    with tabs[1]:
        render_quest_matches(rank_quests(adventurer, quests, limit=QUEST_BOARD_SIZE))

    with tabs[2]:
        _, skill_counts = summarize_completed_quests(completed)
        render_recommendations(
            recommend_quests(adventurer, quests, completed),
            skill_counts.most_common(3)
        )

    with tabs[3]:
        render_leaderboard(
            build_leaderboard(adventurers),
            leaderboard_position(user_id, adventurers)
        )


def main():
    """Main application entry point."""
    initialize_session_state()

    st.title("🛡️ The Adventurers Guild")

    try:
        worksheets = get_worksheets()
        datadog_api_key = get_datadog_api_key()
    except Exception as e:
        st.error("Configuration error. Please contact the administrator.")
        logger.error(f"Failed to load configuration: {e}")
        return

    render_sidebar_lookup()
    handle_lookup()

    if not st.session_state.user_id:
        st.info("👈 Enter an adventurer ID in the sidebar to open a profile.")
        return

    render_dashboard(st.session_state.user_id, worksheets, datadog_api_key)


if __name__ == "__main__":
    main()
