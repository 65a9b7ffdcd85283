"""UI components module for The Adventurers Guild dashboard.

Streamlit rendering functions for the dashboard views:
- Rank card with progress toward the next rank
- Quest board ordered by match score
- History-based recommendations
- Leaderboard
- Sidebar adventurer lookup
"""

import streamlit as st

from guild.ranks import (
    MAX_RANK,
    RANK_THRESHOLDS,
    next_rank_threshold,
    rank_progress_percent,
    xp_to_next_rank
)

RANK_BADGES = {
    "F": "🪵",
    "E": "🥉",
    "D": "🥈",
    "C": "🥇",
    "B": "💎",
    "A": "👑",
    "S": "🐉",
}


def render_rank_card(adventurer: dict) -> None:
    """Render the adventurer's rank, level, XP and progress bar.

    Args:
        adventurer: Adventurer dict from guild.database.get_adventurer
    """
    xp = adventurer.get("xp", 0)
    rank, next_rank_xp = next_rank_threshold(xp)
    progress = rank_progress_percent(xp)

    st.header(f"{RANK_BADGES.get(rank, '')} {adventurer.get('name') or adventurer.get('user_id')}")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Rank", rank)
    with col2:
        st.metric("Level", adventurer.get("level", 1))
    with col3:
        st.metric("Experience Points", f"{xp} XP")
    with col4:
        st.metric("Skill Points", adventurer.get("skill_points", 0))

    st.progress(progress / 100)
    if rank == MAX_RANK:
        st.success("🐉 S rank reached. There is no higher rank!")
    else:
        st.caption(f"{progress:.1f}% toward the next rank: "
                   f"{xp_to_next_rank(xp)} XP to go ({next_rank_xp} XP)")

    stored_rank = adventurer.get("stored_rank")
    if stored_rank and stored_rank != rank:
        st.warning(f"Stored rank {stored_rank} is out of date. Use 'Sync rank' to fix it.")


def render_quest_matches(matches: list) -> None:
    """Render the quest board, best match first.

    Args:
        matches: Quest dicts carrying a 'match_score' key
    """
    st.subheader("⚔️ Quest Board")

    if not matches:
        st.info("No available quests right now. Check back soon!")
        return

    for quest in matches:
        with st.container(border=True):
            col1, col2 = st.columns([4, 1])
            with col1:
                st.write(f"**{quest.get('title', 'Untitled quest')}**")
                st.caption(f"Rank {quest.get('difficulty')} · {quest.get('quest_category') or 'general'}")
                skills = quest.get("required_skills") or []
                if skills:
                    st.write("Skills: " + ", ".join(skills))
                reward = f"{quest.get('xp_reward', 0)} XP"
                if quest.get("monetary_reward"):
                    reward += f" + \\${quest['monetary_reward']:,.2f}"
                st.write(f"Reward: {reward}")
            with col2:
                st.metric("Match", f"{quest['match_score']}%")


def render_recommendations(recommendations: list, favorite_skills: list) -> None:
    """Render history-based quest recommendations.

    Args:
        recommendations: Quest dicts carrying a 'recommendation_score' key
        favorite_skills: (skill, count) pairs from completed quests
    """
    st.subheader("✨ Recommended For You")

    if favorite_skills:
        st.caption("Based on your favorite skills: " +
                   ", ".join(skill for skill, _ in favorite_skills))

    if not recommendations:
        st.info("Complete a few quests to get personal recommendations.")
        return

    for quest in recommendations:
        st.write(f"- **{quest.get('title', 'Untitled quest')}** "
                 f"(rank {quest.get('difficulty')}, score {quest['recommendation_score']:.1f})")


def render_leaderboard(entries: list, position: dict | None = None) -> None:
    """Render the XP leaderboard.

    Args:
        entries: Leaderboard entries from guild.rankings.build_leaderboard
        position: Optional {'position', 'total_users'} for the current adventurer
    """
    st.subheader("🏆 Guild Rankings")

    if position:
        st.write(f"You are **#{position['position']}** of {position['total_users']} adventurers.")

    if not entries:
        st.info("No adventurers on the board yet.")
        return

    st.dataframe(
        [
            {
                "#": entry["position"],
                "Adventurer": entry.get("name") or entry.get("user_id"),
                "Rank": entry.get("rank"),
                "Level": entry.get("level"),
                "XP": entry.get("xp"),
                "Skill Points": entry.get("skill_points"),
            }
            for entry in entries
        ],
        hide_index=True
    )


def render_rank_table() -> None:
    """Render the XP required for each rank."""
    st.subheader("📜 Rank Requirements")
    st.table([{"Rank": f"{RANK_BADGES[entry.rank]} {entry.rank}", "XP Required": entry.threshold}
              for entry in RANK_THRESHOLDS])


def render_sidebar_lookup() -> None:
    """Render the adventurer lookup form in the sidebar.

    Stores the submitted id in session state for processing by main app.
    """
    st.sidebar.header("🎮 Adventurer")

    with st.sidebar.form(key="lookup_form"):
        user_id = st.text_input(
            "Adventurer ID:",
            max_chars=64,
            key="lookup_user_id_input"
        )

        submit_button = st.form_submit_button("Open Profile")

        if submit_button:
            st.session_state["lookup_submission"] = user_id
