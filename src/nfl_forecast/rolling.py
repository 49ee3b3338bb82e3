"""Trailing per-team performance aggregates with no look-ahead.

Every aggregate attached to a team-game row is computed from that team's
strictly earlier games: values are shifted one game before any window is
applied. A team's earliest games therefore carry NaN, and callers drop those
rows rather than fill them.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .models import GameResult

log = logging.getLogger(__name__)

FORM_WEIGHT_STEP = 0.5
DEFAULT_FORM_WEIGHTS: Tuple[float, ...] = (1.0, 1.5, 2.0)

# Per-game columns averaged over the trailing window, and the name each
# aggregate takes on the output row.
ROLLING_COLUMNS = {
    "points_for": "avg_points_for",
    "points_against": "avg_points_against",
    "win": "win_pct",
    "off_epa": "avg_off_epa",
    "def_epa": "avg_def_epa",
    "success_rate": "avg_success_rate",
    "explosive_rate": "avg_explosive_rate",
    "pace": "avg_pace",
}

TEAM_GAME_COLUMNS = [
    "game_id",
    "season",
    "week",
    "gameday",
    "team",
    "opponent",
    "is_home",
    "points_for",
    "points_against",
    "win",
]


def team_games_frame(games: Iterable[GameResult]) -> pd.DataFrame:
    """One row per (team, game) from the team's point of view."""
    rows = []
    for g in games:
        for team, opp, pf, pa, home in (
            (g.home_team, g.away_team, g.home_score, g.away_score, True),
            (g.away_team, g.home_team, g.away_score, g.home_score, False),
        ):
            rows.append(
                {
                    "game_id": g.game_id,
                    "season": g.season,
                    "week": g.week,
                    "gameday": pd.Timestamp(g.gameday),
                    "team": team,
                    "opponent": opp,
                    "is_home": home,
                    "points_for": float(pf),
                    "points_against": float(pa),
                    "win": 1.0 if pf > pa else (0.5 if pf == pa else 0.0),
                }
            )
    return pd.DataFrame(rows, columns=TEAM_GAME_COLUMNS)


def form_weights(n: int) -> Tuple[float, ...]:
    """Linearly increasing weights for the last `n` games, oldest first: 1.0, 1.5, 2.0, ..."""
    if n < 1:
        raise ValueError("form window must be >= 1")
    return tuple(1.0 + FORM_WEIGHT_STEP * i for i in range(n))


def weighted_form(values: np.ndarray, weights: Sequence[float]) -> float:
    """Weighted mean of the most recent outcomes, oldest first.

    Falls back to a plain mean when fewer outcomes than weights are available,
    and NaN when there are none.
    """
    vals = values[~np.isnan(values)]
    if len(vals) == 0:
        return float("nan")
    if len(vals) < len(weights):
        return float(vals.mean())
    w = np.asarray(weights[-len(vals):], dtype=float)
    return float(np.dot(vals, w) / w.sum())


class RollingFeatureAggregator:
    def __init__(
        self,
        window: int = 10,
        form_weights: Sequence[float] = DEFAULT_FORM_WEIGHTS,
        default_rest_days: int = 7,
        min_periods: Optional[int] = None,
    ) -> None:
        """
        Args:
            window: number of prior games in each trailing mean
            form_weights: weights for recent form, oldest to newest
            default_rest_days: rest assigned to a team's first game
            min_periods: prior games required before a mean is reported
                (defaults to the full window)
        """
        if window < 1:
            raise ValueError("window must be >= 1")
        self.window = window
        self.form_weights = tuple(form_weights)
        self.default_rest_days = default_rest_days
        self.min_periods = window if min_periods is None else min_periods

    def compute(self, team_games: pd.DataFrame) -> pd.DataFrame:
        """Attach trailing aggregates, recent form and rest to each team-game row.

        Args:
            team_games: frame shaped like `team_games_frame`, optionally with
                per-game efficiency columns already merged in

        Returns:
            A copy sorted by team then date, with one aggregate column per
            available per-game statistic plus ``recent_form`` and ``rest_days``.
        """
        df = team_games.copy()
        df["gameday"] = pd.to_datetime(df["gameday"])
        df = df.sort_values(["team", "gameday", "game_id"], kind="mergesort").reset_index(drop=True)

        grouped = df.groupby("team", sort=False)
        window, min_periods = self.window, self.min_periods

        for src, dst in ROLLING_COLUMNS.items():
            if src not in df.columns:
                continue
            df[dst] = grouped[src].transform(
                lambda s: s.shift(1).rolling(window=window, min_periods=min_periods).mean()
            )

        weights = self.form_weights
        df["recent_form"] = grouped["win"].transform(
            lambda s: s.shift(1)
            .rolling(window=len(weights), min_periods=1)
            .apply(lambda x: weighted_form(x, weights), raw=True)
        )

        prev_date = grouped["gameday"].shift(1)
        df["rest_days"] = (
            (df["gameday"] - prev_date).dt.days.fillna(self.default_rest_days).astype(float)
        )
        return df

    def as_of(self, team_games: pd.DataFrame, team: str, as_of: date) -> pd.Series:
        """Aggregates for `team` heading into a match on `as_of`.

        Only games dated strictly before `as_of` contribute. The result has
        the same columns as a `compute` row.
        """
        cutoff = pd.Timestamp(as_of)
        history = team_games[
            (team_games["team"] == team) & (pd.to_datetime(team_games["gameday"]) < cutoff)
        ]
        probe = {col: np.nan for col in team_games.columns}
        probe.update({"game_id": "__probe__", "team": team, "gameday": cutoff})
        frame = pd.concat([history, pd.DataFrame([probe])], ignore_index=True)
        out = self.compute(frame)
        return out[out["game_id"] == "__probe__"].iloc[0]
