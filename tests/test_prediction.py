"""Tests for the spread to win-probability mapping."""

from __future__ import annotations

import pytest

from nfl_forecast.prediction import (
    cover_probability,
    normal_cdf,
    predicted_winner,
    spread_to_win_probability,
)


class TestNormalCdf:
    """Test the standard normal CDF."""

    def test_known_values(self):
        """Spot-check against tabulated values."""
        assert normal_cdf(0.0) == 0.5
        assert normal_cdf(1.0) == pytest.approx(0.8413, abs=1e-4)
        assert normal_cdf(-1.96) == pytest.approx(0.025, abs=1e-3)


class TestWinProbability:
    """Test the clipped spread mapping."""

    def test_even_spread(self):
        """A zero spread is exactly a coin flip."""
        assert spread_to_win_probability(0.0) == 0.5

    def test_one_sigma(self):
        """One sigma of spread is about 84%."""
        assert spread_to_win_probability(13.5) == pytest.approx(0.8413, abs=1e-4)
        assert spread_to_win_probability(-13.5) == pytest.approx(0.1587, abs=1e-4)

    def test_clipped(self):
        """Large spreads hit the floor and ceiling."""
        assert spread_to_win_probability(60.0) == 0.95
        assert spread_to_win_probability(-60.0) == 0.05

    def test_bounds_and_monotonic(self):
        """Across -1000..1000 the output stays in bounds and never decreases."""
        previous = 0.0
        for spread in range(-1000, 1001):
            p = spread_to_win_probability(float(spread))
            assert 0.05 <= p <= 0.95
            assert p >= previous
            previous = p

    def test_custom_bounds(self):
        """Floor, ceiling and sigma are configurable."""
        assert spread_to_win_probability(100.0, sigma=10.0, floor=0.1, ceiling=0.9) == 0.9
        assert spread_to_win_probability(5.0, sigma=5.0, floor=0.0, ceiling=1.0) == pytest.approx(
            0.8413, abs=1e-4
        )

    def test_invalid_sigma(self):
        """Sigma must be positive."""
        with pytest.raises(ValueError):
            spread_to_win_probability(3.0, sigma=0.0)


class TestPredictedWinner:
    """Test the winner label."""

    def test_home_favored(self):
        assert predicted_winner(2.5, "KC", "BUF") == "KC"

    def test_away_favored(self):
        assert predicted_winner(-0.5, "KC", "BUF") == "BUF"

    def test_pickem_goes_away(self):
        """An exact zero spread is labeled for the away side."""
        assert predicted_winner(0.0, "KC", "BUF") == "BUF"


class TestCoverProbability:
    """Test cover probability against a posted line."""

    def test_on_the_line(self):
        """A spread equal to the line is a coin flip."""
        assert cover_probability(3.0, line=3.0) == pytest.approx(0.5)

    def test_unclipped(self):
        """Cover probability is not clipped."""
        assert cover_probability(60.0) > 0.95

    def test_narrower_sigma(self):
        """The default cover sigma is tighter than the win sigma."""
        assert cover_probability(10.0) == pytest.approx(0.8413, abs=1e-4)
        assert cover_probability(10.0) > spread_to_win_probability(10.0)
