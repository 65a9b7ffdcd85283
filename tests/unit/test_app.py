"""Unit tests for the dashboard wiring in app.py."""

from unittest.mock import MagicMock, patch

import app
from guild.database import ADVENTURERS_WORKSHEET, COMPLETIONS_WORKSHEET, QUESTS_WORKSHEET

from test_database import (
    COMPLETION_HEADERS,
    QUEST_HEADERS,
    MockSheetsClient,
    adventurer_row,
    quest_row
)


def make_worksheets(rank='C', xp=10000):
    adventurers = MockSheetsClient()
    adventurers.rows = [adventurer_row('u1', rank=rank, xp=xp)]
    quests = MockSheetsClient(QUEST_HEADERS)
    quests.rows = [quest_row('q1')]
    return {
        ADVENTURERS_WORKSHEET: adventurers,
        QUESTS_WORKSHEET: quests,
        COMPLETIONS_WORKSHEET: MockSheetsClient(COMPLETION_HEADERS)
    }


@patch('app.render_leaderboard')
@patch('app.render_recommendations')
@patch('app.render_quest_matches')
@patch('app.render_rank_table')
@patch('app.render_rank_card')
@patch('app.st')
class TestRenderDashboard:
    """Test render_dashboard data flow."""

    def test_sync_button_refreshes_profile(self, mock_st, mock_card, *_):
        """The rank card shows the rewritten Rank cell, not the stale one."""
        mock_st.sidebar.button.return_value = True
        mock_st.tabs.return_value = [MagicMock() for _ in range(4)]
        worksheets = make_worksheets(rank='C', xp=10000)

        with patch('guild.progression.send_rank_up_metric'):
            app.render_dashboard('u1', worksheets, None)

        adventurer = mock_card.call_args[0][0]
        assert adventurer['rank'] == 'B'
        assert adventurer['stored_rank'] == 'B'
        assert worksheets[ADVENTURERS_WORKSHEET].rows[0][2] == 'B'

    def test_no_sync_without_button(self, mock_st, mock_card, *_):
        mock_st.sidebar.button.return_value = False
        mock_st.tabs.return_value = [MagicMock() for _ in range(4)]
        worksheets = make_worksheets(rank='C', xp=10000)

        app.render_dashboard('u1', worksheets, None)

        assert mock_card.call_args[0][0]['stored_rank'] == 'C'
        assert worksheets[ADVENTURERS_WORKSHEET].rows[0][2] == 'C'

    def test_unknown_adventurer_warns(self, mock_st, mock_card, *_):
        mock_st.sidebar.button.return_value = False

        app.render_dashboard('nobody', make_worksheets(), None)

        mock_st.warning.assert_called_once()
        mock_card.assert_not_called()
