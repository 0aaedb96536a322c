"""Tests for Elo rating calculations."""

import pytest

from harbour_battles.ranking.elo import (
    calculate_expected_win_chance,
    compute_change,
    update_elo,
)


class TestCalculateExpectedWinChance:
    """Tests for expected win probability calculation."""

    def test_equal_ratings(self):
        """Test equal ratings produce 0.5 expected."""
        expected = calculate_expected_win_chance(1500, 1500)
        assert expected == pytest.approx(0.5, abs=0.001)

    def test_higher_rating_higher_expected(self):
        """Test higher rated project has higher expected score."""
        expected = calculate_expected_win_chance(1600, 1400)
        assert 0.5 < expected < 1.0

    def test_400_point_difference(self):
        """Test 400 point difference produces ~91% expected."""
        expected = calculate_expected_win_chance(1900, 1500)
        # 10^(400/400) = 10, so expected = 1/(1+0.1) ≈ 0.909
        assert expected == pytest.approx(0.909, abs=0.01)

    def test_expectations_sum_to_one(self):
        """Both sides' expectations are complementary."""
        a = calculate_expected_win_chance(1712.5, 1433.0)
        b = calculate_expected_win_chance(1433.0, 1712.5)
        assert a + b == pytest.approx(1.0)

    def test_custom_scale(self):
        """A smaller scale makes the same gap more decisive."""
        wide = calculate_expected_win_chance(1600, 1500, scale=400)
        narrow = calculate_expected_win_chance(1600, 1500, scale=100)
        assert narrow > wide


class TestUpdateElo:
    """Tests for Elo rating updates."""

    def test_equal_ratings_move_half_k(self):
        """Equal ratings with K=32 move exactly 16 points each way."""
        new_w, new_l = update_elo(1500, 1500, k_factor=32)
        assert new_w == pytest.approx(1516.0)
        assert new_l == pytest.approx(1484.0)

    def test_zero_sum(self):
        """Gains equal losses."""
        new_w, new_l = update_elo(1620.0, 1388.0)
        assert (new_w - 1620.0) == pytest.approx(1388.0 - new_l)

    def test_upset_win_larger_change(self):
        """Test upset win produces larger rating change."""
        new_w, new_l = update_elo(1400, 1600, k_factor=32)
        # E_w = 1 / (1 + 10^0.5) ≈ 0.2403
        assert new_w - 1400 == pytest.approx(24.31, abs=0.01)
        assert new_l == pytest.approx(1600 - (new_w - 1400))

    def test_expected_win_smaller_change(self):
        """Test expected win produces smaller rating change."""
        new_w, _ = update_elo(1600, 1400, k_factor=32)
        assert 0 < new_w - 1600 < 16

    def test_k_factor_scales_delta(self):
        """Doubling K doubles the delta."""
        small, _ = update_elo(1500, 1500, k_factor=16)
        large, _ = update_elo(1500, 1500, k_factor=32)
        assert (large - 1500) == pytest.approx(2 * (small - 1500))


class TestComputeChange:
    """Tests for RatingChange construction."""

    def test_fields(self):
        """Change records before, after and expectation."""
        change = compute_change("a", "b", 1500.0, 1500.0)

        assert change.winner_id == "a"
        assert change.loser_id == "b"
        assert change.winner_before == 1500.0
        assert change.loser_before == 1500.0
        assert change.expected_win == pytest.approx(0.5)
        assert change.delta == pytest.approx(16.0)
        assert change.new_ratings == (pytest.approx(1516.0), pytest.approx(1484.0))

    def test_matches_update_elo(self):
        """compute_change agrees with update_elo."""
        change = compute_change("a", "b", 1432.0, 1587.0, k_factor=24)
        assert change.new_ratings == update_elo(1432.0, 1587.0, k_factor=24)
