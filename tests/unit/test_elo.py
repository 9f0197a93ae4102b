"""
Unit tests for ELO calculator.

Tests the core ELO calculation logic to ensure:
- Equal ratings split K evenly
- Favorites winning gain less than underdogs winning
- Results mirror exactly when the players are swapped
- Deltas truncate toward zero
"""

import pytest

from rallyelo.elo.calculator import EloCalculator, EloUpdate, compute, expected_score
from rallyelo.elo.constants import DEFAULT_ELO


class TestCompute:
    """Tests for the compute() function."""

    def test_equal_ratings_k32(self):
        """Two 1000-rated players, K=32: winner +16, loser -16."""
        result = compute(1000, 1000, True, 32)

        assert result.new_a == 1016
        assert result.new_b == 984
        assert result.delta_a == 16
        assert result.delta_b == -16

    def test_unpacks_as_four_tuple(self):
        new_a, new_b, delta_a, delta_b = compute(1000, 1000, False, 32)
        assert (new_a, new_b, delta_a, delta_b) == (984, 1016, -16, 16)

    def test_new_rating_is_old_plus_delta(self):
        result = compute(1234, 987, False, 24)
        assert result.new_a == result.before_a + result.delta_a
        assert result.new_b == result.before_b + result.delta_b

    def test_deterministic(self):
        assert compute(1100, 950, True, 32) == compute(1100, 950, True, 32)

    def test_favorite_gains_less_than_underdog(self):
        favorite_wins = compute(1800, 1600, True, 32)
        underdog_wins = compute(1600, 1800, True, 32)

        assert 0 < favorite_wins.delta_a < underdog_wins.delta_a
        assert underdog_wins.was_upset
        assert not favorite_wins.was_upset

    def test_swapping_players_mirrors_result(self):
        forward = compute(1200, 1000, True, 32)
        backward = compute(1000, 1200, False, 32)

        assert forward.new_a == backward.new_b
        assert forward.new_b == backward.new_a
        assert forward.delta_a == backward.delta_b
        assert forward.delta_b == backward.delta_a

    def test_larger_k_moves_ratings_more(self):
        small = compute(1000, 1000, True, 16)
        large = compute(1000, 1000, True, 40)
        assert abs(large.delta_a) > abs(small.delta_a)

    def test_deltas_truncate_toward_zero(self):
        """
        1400 beats 1000 with K=32.

        expected_a ~= 0.909 -> 32 * 0.0909 = 2.9 -> +2
        expected_b ~= 0.0909 -> 32 * -0.0909 = -2.9 -> -2
        """
        result = compute(1400, 1000, True, 32)
        assert result.delta_a == 2
        assert result.delta_b == -2

        # Upset: both sides truncate toward zero from 29.09
        upset = compute(1000, 1400, True, 32)
        assert upset.delta_a == 29
        assert upset.delta_b == -29

    def test_deltas_never_exceed_k(self):
        for a, b in [(100, 3000), (3000, 100), (1000, 1000)]:
            for a_won in (True, False):
                result = compute(a, b, a_won, 32)
                assert abs(result.delta_a) <= 32
                assert abs(result.delta_b) <= 32

    @pytest.mark.parametrize("k_factor", [0, -1])
    def test_non_positive_k_rejected(self, k_factor):
        with pytest.raises(ValueError):
            compute(1000, 1000, True, k_factor)

    def test_repr(self):
        assert "1000 -> 1016 (+16)" in repr(compute(1000, 1000, True, 32))


class TestExpectedScore:

    def test_equal_ratings_is_half(self):
        assert expected_score(1000, 1000) == pytest.approx(0.5)

    def test_400_point_gap(self):
        assert expected_score(1400, 1000) == pytest.approx(10 / 11)

    def test_probabilities_sum_to_one(self):
        assert expected_score(1234, 1111) + expected_score(1111, 1234) == pytest.approx(1.0)

    def test_huge_gap_does_not_overflow(self):
        assert expected_score(0, 10**7) == 0.0


class TestEloCalculator:
    """Tests for EloCalculator class."""

    @pytest.fixture
    def calculator(self):
        """Create a calculator instance for tests."""
        return EloCalculator(k_factor=32)

    def test_calculate_matches_compute(self, calculator):
        assert calculator.calculate(1050, 990, a_won=False) == compute(1050, 990, False, 32)

    def test_default_ratings(self, calculator):
        result = calculator.calculate(DEFAULT_ELO, DEFAULT_ELO, a_won=True)
        assert isinstance(result, EloUpdate)
        assert result.new_a == DEFAULT_ELO + 16

    def test_win_probability(self, calculator):
        assert calculator.win_probability(1200, 1000) > 0.5

    def test_max_gain(self, calculator):
        assert calculator.max_gain(1000, 1000) == 16

    def test_rejects_bad_k(self):
        with pytest.raises(ValueError):
            EloCalculator(k_factor=0)
