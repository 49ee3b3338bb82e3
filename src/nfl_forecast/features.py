"""Per-fixture feature rows.

Joins pre-match ratings, trailing aggregates and schedule context into one
row per match (training) or per upcoming fixture (inference). A row whose
inputs are missing is excluded with a log line instead of being filled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import Settings
from .constants import is_division_game
from .exceptions import DataIncomplete
from .models import Fixture, GameResult
from .ratings import RatingEngine, RatingHistory
from .rolling import RollingFeatureAggregator, form_weights, team_games_frame

log = logging.getLogger(__name__)

# Rolled team-game column -> per-side feature suffix
SIDE_FEATURES: Dict[str, str] = {
    "avg_points_for": "avg_pts",
    "avg_points_against": "avg_pts_allowed",
    "win_pct": "win_pct",
    "recent_form": "recent_form",
    "avg_off_epa": "off_epa",
    "avg_def_epa": "def_epa",
    "avg_success_rate": "success_rate",
    "avg_explosive_rate": "explosive_rate",
    "avg_pace": "pace",
    "rest_days": "rest",
}

ID_COLUMNS = ["game_id", "season", "week", "gameday", "home_team", "away_team"]
OUTCOME_COLUMNS = ["home_score", "away_score", "margin", "total", "home_win"]


@dataclass
class FeatureContext:
    """Everything derived from the completed-match history."""

    games: List[GameResult]
    ratings: RatingHistory
    team_games: pd.DataFrame
    rolled: pd.DataFrame

    @property
    def side_columns(self) -> List[str]:
        return [c for c in SIDE_FEATURES if c in self.rolled.columns]


def feature_columns(frame: pd.DataFrame) -> List[str]:
    """Model-facing columns present in an assembled frame."""
    fixed = ["home_elo", "away_elo", "elo_diff", "rest_diff", "is_divisional"]
    sides = [f"{side}_{name}" for name in SIDE_FEATURES.values() for side in ("home", "away")]
    return [c for c in fixed + sides if c in frame.columns]


class FeatureAssembler:
    def __init__(
        self,
        engine: Optional[RatingEngine] = None,
        aggregator: Optional[RollingFeatureAggregator] = None,
    ) -> None:
        self.engine = engine or RatingEngine()
        self.aggregator = aggregator or RollingFeatureAggregator()

    @classmethod
    def from_settings(cls, settings: Settings) -> "FeatureAssembler":
        return cls(
            engine=RatingEngine(k=settings.elo_k, initial=settings.elo_initial),
            aggregator=RollingFeatureAggregator(
                window=settings.rolling_window,
                form_weights=form_weights(settings.form_window),
                default_rest_days=settings.default_rest_days,
            ),
        )

    def prepare(
        self, games: Sequence[GameResult], efficiency: Optional[pd.DataFrame] = None
    ) -> FeatureContext:
        """Rate the history and roll its aggregates.

        Args:
            games: completed matches in chronological order
            efficiency: optional per-(game_id, team) frame from `game_efficiency`
        """
        games = list(games)
        ratings = self.engine.run(games)
        team_games = team_games_frame(games)
        if efficiency is not None and not efficiency.empty:
            team_games = team_games.merge(efficiency, on=["game_id", "team"], how="left")
        rolled = self.aggregator.compute(team_games)
        return FeatureContext(games=games, ratings=ratings, team_games=team_games, rolled=rolled)

    # -------------------------------------------------------------------------
    # Training rows
    # -------------------------------------------------------------------------

    def training_frame(self, ctx: FeatureContext) -> pd.DataFrame:
        """One row per completed match, keeping only rows with full history."""
        cols = ctx.side_columns
        rolled = ctx.rolled[["game_id", "team"] + cols]
        elo = ctx.ratings.to_frame()[["game_id", "team", "rating_before"]]

        base = pd.DataFrame(
            [
                {
                    "game_id": g.game_id,
                    "season": g.season,
                    "week": g.week,
                    "gameday": pd.Timestamp(g.gameday),
                    "home_team": g.home_team,
                    "away_team": g.away_team,
                    "home_score": g.home_score,
                    "away_score": g.away_score,
                }
                for g in ctx.games
            ],
            columns=ID_COLUMNS + ["home_score", "away_score"],
        )

        frame = base
        for side in ("home", "away"):
            side_stats = rolled.rename(columns={c: f"{side}_{SIDE_FEATURES[c]}" for c in cols})
            side_stats = side_stats.rename(columns={"team": f"{side}_team"})
            side_elo = elo.rename(columns={"team": f"{side}_team", "rating_before": f"{side}_elo"})
            frame = frame.merge(side_stats, on=["game_id", f"{side}_team"], how="left")
            frame = frame.merge(side_elo, on=["game_id", f"{side}_team"], how="left")

        frame = _derive(frame)
        frame["margin"] = frame["home_score"] - frame["away_score"]
        frame["total"] = frame["home_score"] + frame["away_score"]
        frame["home_win"] = (frame["margin"] > 0).astype(int)

        required = feature_columns(frame)
        complete = frame[required].notna().all(axis=1)
        dropped = int((~complete).sum())
        if dropped:
            log.info(
                "Excluded %s of %s training rows with incomplete history", dropped, len(frame)
            )
        return frame[complete].reset_index(drop=True)

    # -------------------------------------------------------------------------
    # Inference rows
    # -------------------------------------------------------------------------

    def fixture_row(self, ctx: FeatureContext, fixture: Fixture) -> Dict[str, object]:
        """Feature row for an upcoming fixture from history strictly before its date.

        Raises:
            DataIncomplete: either side lacks enough prior matches.
        """
        row: Dict[str, object] = {
            "game_id": fixture.game_id,
            "season": fixture.season,
            "week": fixture.week,
            "gameday": pd.Timestamp(fixture.gameday),
            "home_team": fixture.home_team,
            "away_team": fixture.away_team,
        }
        for side, team in (("home", fixture.home_team), ("away", fixture.away_team)):
            agg = self.aggregator.as_of(ctx.team_games, team, fixture.gameday)
            for col in ctx.side_columns:
                row[f"{side}_{SIDE_FEATURES[col]}"] = agg[col]
            row[f"{side}_elo"] = ctx.ratings.rating_as_of(team, fixture.gameday)

        frame = _derive(pd.DataFrame([row]))
        missing = [c for c in feature_columns(frame) if pd.isna(frame.at[0, c])]
        if missing:
            raise DataIncomplete(
                f"{fixture.game_id}: insufficient history for {', '.join(missing)}"
            )
        return frame.iloc[0].to_dict()

    def fixture_frame(self, ctx: FeatureContext, fixtures: Sequence[Fixture]) -> pd.DataFrame:
        rows = []
        for fx in fixtures:
            try:
                rows.append(self.fixture_row(ctx, fx))
            except DataIncomplete as e:
                log.warning("Skipping fixture: %s", e)
        if not rows:
            return pd.DataFrame(columns=ID_COLUMNS)
        return pd.DataFrame(rows).reset_index(drop=True)


def _derive(frame: pd.DataFrame) -> pd.DataFrame:
    frame = frame.copy()
    frame["elo_diff"] = frame["home_elo"] - frame["away_elo"]
    if "home_rest" in frame.columns:
        frame["rest_diff"] = frame["home_rest"] - frame["away_rest"]
    frame["is_divisional"] = np.array(
        [is_division_game(h, a) for h, a in zip(frame["home_team"], frame["away_team"])],
        dtype=int,
    )
    return frame
