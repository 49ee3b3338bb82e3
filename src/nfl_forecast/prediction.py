"""Spread-to-probability mapping and the base prediction record.

All spreads are from the home team perspective:
- Positive spread = home team favored
- Negative spread = away team favored

Win probability treats the final margin as normally distributed around the
predicted spread. The result is clipped so no single fixture is ever
reported as a near-certainty.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Optional

# Standard deviation of NFL final margins around the spread (points)
DEFAULT_SPREAD_SIGMA = 13.5

# Narrower spread used when pricing a cover against a posted line
DEFAULT_COVER_SIGMA = 10.0

# Reported win probabilities never leave [floor, ceiling]
WIN_PROB_FLOOR = 0.05
WIN_PROB_CEILING = 0.95


def normal_cdf(x: float) -> float:
    """Cumulative distribution function of the standard normal.

    Uses the error function, so no scipy dependency.

    Args:
        x: Standard score (z-score)

    Returns:
        Probability that a standard normal variable is less than x
    """
    return (1.0 + math.erf(x / math.sqrt(2.0))) / 2.0


def spread_to_win_probability(
    spread: float,
    sigma: float = DEFAULT_SPREAD_SIGMA,
    floor: float = WIN_PROB_FLOOR,
    ceiling: float = WIN_PROB_CEILING,
) -> float:
    """Home win probability for a predicted spread.

    Monotonic non-decreasing in `spread`, exactly 0.5 at a spread of zero,
    and always inside [floor, ceiling].

    Args:
        spread: Predicted home margin (points)
        sigma: Margin standard deviation
        floor: Lowest probability reported
        ceiling: Highest probability reported

    Returns:
        Clipped home win probability

    Example:
        >>> spread_to_win_probability(0.0)
        0.5
        >>> spread_to_win_probability(60.0)
        0.95
    """
    if sigma <= 0:
        raise ValueError("sigma must be positive")
    p = normal_cdf(spread / sigma)
    return min(max(p, floor), ceiling)


def predicted_winner(spread: float, home_team: str, away_team: str) -> str:
    """Home team when favored, otherwise the away team (a pick'em goes away)."""
    return home_team if spread > 0 else away_team


def cover_probability(
    spread: float, line: float = 0.0, sigma: float = DEFAULT_COVER_SIGMA
) -> float:
    """Probability the home margin beats `line` given a predicted `spread`.

    Unclipped; used for reporting against a posted line, not for picks.

    Example:
        >>> round(cover_probability(3.0, line=3.0), 2)
        0.5
    """
    if sigma <= 0:
        raise ValueError("sigma must be positive")
    return normal_cdf((spread - line) / sigma)


@dataclass(frozen=True)
class BasePrediction:
    """Model output for one fixture before any adjustment.

    All fields from home team perspective.
    """

    game_id: str
    gameday: date
    home_team: str
    away_team: str
    spread: float  # Predicted home margin
    total: float  # Predicted combined points
    home_win_probability: float  # Derived from spread, clipped
    classifier_probability: Optional[float] = None  # Raw winner-model probability
    season: int = 0
    week: int = 0
