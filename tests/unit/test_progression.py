"""Unit tests for progression updates."""

from unittest.mock import patch

import pytest
from guild.database import PersistenceError, get_adventurer
from guild.progression import apply_skill_rewards, award_quest_xp, sync_adventurer_rank
from guild.ranks import InvalidXPError

from test_database import MockSheetsClient, adventurer_row


class TestAwardQuestXp:
    """Test award_quest_xp functionality."""

    @patch('guild.progression.send_rank_up_metric')
    def test_award_within_rank(self, mock_metric):
        """Small awards add XP without a rank change."""
        mock_client = MockSheetsClient()
        mock_client.rows = [adventurer_row('u1', rank='F', xp=100)]

        result = award_quest_xp('u1', 200, mock_client, 'test-api-key')

        assert result == {
            'xp': 300,
            'rank': 'F',
            'previous_rank': 'F',
            'level': 1,
            'has_rank_changed': False,
            'skill_points': 40,
            'skill_progress': {'node': 2, 'css': 4}
        }
        assert mock_client.rows[0][3] == 300
        assert mock_client.rows[0][9].endswith('Z')
        mock_metric.assert_not_called()

    @patch('guild.progression.send_rank_up_metric')
    def test_award_skips_ranks(self, mock_metric):
        """A large bonus can jump from F straight to C."""
        mock_client = MockSheetsClient()
        mock_client.rows = [adventurer_row('u1', rank='F', xp=500)]

        result = award_quest_xp('u1', 6000, mock_client, 'test-api-key')

        assert result['rank'] == 'C'
        assert result['previous_rank'] == 'F'
        assert result['has_rank_changed'] is True
        assert mock_client.rows[0][2] == 'C'
        mock_metric.assert_called_once_with('F', 'C', 'test-api-key')

    @patch('guild.progression.send_rank_up_metric')
    def test_no_metric_without_api_key(self, mock_metric):
        mock_client = MockSheetsClient()
        mock_client.rows = [adventurer_row('u1', xp=900)]

        result = award_quest_xp('u1', 100, mock_client)

        assert result['rank'] == 'E'
        mock_metric.assert_not_called()

    @pytest.mark.parametrize("reward", [-1, 1.5, "100", True])
    def test_invalid_reward(self, reward):
        with pytest.raises(InvalidXPError):
            award_quest_xp('u1', reward, MockSheetsClient())

    def test_unknown_adventurer(self):
        with pytest.raises(PersistenceError):
            award_quest_xp('nobody', 100, MockSheetsClient())

    @patch('guild.progression.send_rank_up_metric')
    def test_skill_rewards_persisted(self, mock_metric):
        """Skill points raise the total and the per-skill levels."""
        mock_client = MockSheetsClient()
        mock_client.rows = [adventurer_row('u1', xp=0, Skill_Points=40,
                                           Skill_Progress='node:2, css:4:480')]

        result = award_quest_xp('u1', 100, mock_client, skill_rewards={'Node': 150, 'css': 50, 'go': 30})

        assert result['skill_points'] == 270
        assert result['skill_progress'] == {'node': 3, 'css': 5, 'go': 0}
        assert mock_client.rows[0][4] == 270
        assert mock_client.rows[0][8] == 'node:3:350, css:5:530, go:0:30'

    def test_skill_levels_read_back(self):
        mock_client = MockSheetsClient()
        mock_client.rows = [adventurer_row('u1', Skill_Progress='')]

        award_quest_xp('u1', 0, mock_client, skill_rewards={'react': 250})
        award_quest_xp('u1', 0, mock_client, skill_rewards={'react': 100})

        adventurer = get_adventurer('u1', mock_client)
        assert adventurer['skill_progress'] == {'react': 3}
        assert adventurer['skill_experience'] == {'react': 350}

    @pytest.mark.parametrize("rewards", [{'react': -5}, {'react': 1.5}, {'react': True}, {' ': 10}])
    def test_invalid_skill_rewards(self, rewards):
        mock_client = MockSheetsClient()
        mock_client.rows = [adventurer_row('u1')]

        with pytest.raises(ValueError):
            award_quest_xp('u1', 100, mock_client, skill_rewards=rewards)
        # Nothing was written
        assert mock_client.rows[0][3] == 0

    @patch('guild.progression.update_adventurer_progress', return_value=False)
    def test_write_failure_raises(self, mock_update):
        mock_client = MockSheetsClient()
        mock_client.rows = [adventurer_row('u1')]

        with pytest.raises(PersistenceError):
            award_quest_xp('u1', 100, mock_client)


class TestSyncAdventurerRank:
    """Test sync_adventurer_rank functionality."""

    @patch('guild.progression.send_rank_up_metric')
    def test_stale_rank_rewritten(self, mock_metric):
        mock_client = MockSheetsClient()
        mock_client.rows = [adventurer_row('u1', rank='C', xp=10000)]

        result = sync_adventurer_rank('u1', mock_client, 'test-api-key')

        assert result == {'rank': 'B', 'previous_rank': 'C', 'xp': 10000, 'has_rank_changed': True}
        assert mock_client.rows[0][2] == 'B'
        mock_metric.assert_called_once_with('C', 'B', 'test-api-key')

    @patch('guild.progression.send_rank_up_metric')
    def test_downgrade_not_counted_as_rank_up(self, mock_metric):
        """A label that was too high is corrected without a rank-up metric."""
        mock_client = MockSheetsClient()
        mock_client.rows = [adventurer_row('u1', rank='A', xp=10000)]

        result = sync_adventurer_rank('u1', mock_client, 'test-api-key')

        assert result['has_rank_changed'] is True
        assert mock_client.rows[0][2] == 'B'
        mock_metric.assert_not_called()

    @patch('guild.progression.update_adventurer_rank')
    def test_current_rank_not_rewritten(self, mock_update):
        mock_client = MockSheetsClient()
        mock_client.rows = [adventurer_row('u1', rank='B', xp=10000)]

        result = sync_adventurer_rank('u1', mock_client)

        assert result['has_rank_changed'] is False
        mock_update.assert_not_called()

    @patch('guild.progression.send_rank_up_metric')
    @pytest.mark.parametrize("xp,expected", [(0, 'F'), (7000, 'C')])
    def test_blank_stored_rank(self, mock_metric, xp, expected):
        """An empty Rank cell is filled in without a rank-up metric."""
        mock_client = MockSheetsClient()
        mock_client.rows = [adventurer_row('u1', rank='', xp=xp)]

        result = sync_adventurer_rank('u1', mock_client, 'test-api-key')

        assert result['previous_rank'] is None
        assert result['rank'] == expected
        assert mock_client.rows[0][2] == expected
        mock_metric.assert_not_called()

    def test_unknown_adventurer(self):
        with pytest.raises(PersistenceError):
            sync_adventurer_rank('nobody', MockSheetsClient())


class TestApplySkillRewards:
    """Test apply_skill_rewards functionality."""

    def test_new_skill(self):
        levels, experience = apply_skill_rewards({}, {}, {'react': 250})

        assert levels == {'react': 2}
        assert experience == {'react': 250}

    def test_level_without_points_starts_at_level_minimum(self):
        """node:2 with no recorded points counts as 200 points."""
        levels, experience = apply_skill_rewards({'node': 2}, {}, {'node': 150})

        assert levels == {'node': 3}
        assert experience == {'node': 350}

    def test_capped_at_max_level(self):
        levels, _ = apply_skill_rewards({}, {}, {'rust': 5000})

        assert levels == {'rust': 5}

    def test_custom_points_per_level(self):
        levels, _ = apply_skill_rewards({}, {}, {'sql': 90}, points_per_level=30, max_level=10)

        assert levels == {'sql': 3}

    def test_case_insensitive_merge(self):
        levels, experience = apply_skill_rewards({'React': 1}, {'React': 120}, {'react': 100})

        assert levels == {'React': 2}
        assert experience == {'React': 220}

    def test_inputs_not_mutated(self):
        levels, experience = {'node': 1}, {'node': 100}

        apply_skill_rewards(levels, experience, {'node': 500})

        assert levels == {'node': 1}
        assert experience == {'node': 100}
