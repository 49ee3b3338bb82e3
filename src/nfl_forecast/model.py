"""Base outcome models: winner, spread and total.

Three estimators share one fitted object:

- winner: logistic regression on home_win
- spread: linear regression on the home margin
- total: linear regression on combined points

Each uses the subset of its predictor list present in the training frame,
so a history without play-by-play still trains on the score-based features.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression, LogisticRegression
from sklearn.metrics import mean_absolute_error
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from .config import Settings
from .exceptions import DataIncomplete
from .prediction import BasePrediction, spread_to_win_probability

log = logging.getLogger(__name__)

WINNER_FEATURES = [
    "elo_diff",
    "home_avg_pts",
    "away_avg_pts",
    "home_avg_pts_allowed",
    "away_avg_pts_allowed",
    "home_win_pct",
    "away_win_pct",
    "home_rest",
    "away_rest",
    "rest_diff",
    "home_recent_form",
    "away_recent_form",
    "home_off_epa",
    "away_off_epa",
    "home_success_rate",
    "away_success_rate",
    "is_divisional",
]

SPREAD_FEATURES = [
    "elo_diff",
    "home_avg_pts",
    "away_avg_pts",
    "home_avg_pts_allowed",
    "away_avg_pts_allowed",
    "home_recent_form",
    "away_recent_form",
    "home_off_epa",
    "away_off_epa",
    "home_success_rate",
    "away_success_rate",
    "rest_diff",
    "is_divisional",
]

TOTAL_FEATURES = [
    "home_avg_pts",
    "away_avg_pts",
    "home_avg_pts_allowed",
    "away_avg_pts_allowed",
    "home_off_epa",
    "away_off_epa",
    "home_success_rate",
    "away_success_rate",
    "is_divisional",
]


def present(features: Sequence[str], frame: pd.DataFrame) -> List[str]:
    return [f for f in features if f in frame.columns]


@dataclass(frozen=True)
class HoldoutReport:
    """Scores of a model trained before `cutoff` on the matches after it."""

    cutoff: pd.Timestamp
    train_games: int
    test_games: int
    winner_accuracy: Optional[float]
    spread_mae: Optional[float]
    total_mae: Optional[float]
    spread_r2: float  # In-sample
    total_r2: float  # In-sample

    def to_dict(self) -> Dict[str, object]:
        return {
            "cutoff": self.cutoff.date().isoformat(),
            "train_games": self.train_games,
            "test_games": self.test_games,
            "winner_accuracy": self.winner_accuracy,
            "spread_mae": self.spread_mae,
            "total_mae": self.total_mae,
            "spread_r2": self.spread_r2,
            "total_r2": self.total_r2,
        }


class PredictiveModel:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings()
        self.winner = Pipeline(
            [("scale", StandardScaler()), ("clf", LogisticRegression(max_iter=1000))]
        )
        self.spread = LinearRegression()
        self.total = LinearRegression()
        self.features: Dict[str, List[str]] = {}
        self._r2: Dict[str, float] = {}

    @property
    def fitted(self) -> bool:
        return bool(self.features)

    def fit(self, frame: pd.DataFrame) -> "PredictiveModel":
        """Fit all three estimators on an assembled training frame.

        Rows missing any predictor are dropped first.

        Raises:
            DataIncomplete: no usable rows, or only one outcome class.
        """
        features = {
            "winner": present(WINNER_FEATURES, frame),
            "spread": present(SPREAD_FEATURES, frame),
            "total": present(TOTAL_FEATURES, frame),
        }
        used = sorted(set().union(*features.values()))
        clean = frame.dropna(subset=used + ["home_score", "away_score"])
        if clean.empty:
            raise DataIncomplete("No complete training rows")

        home_win = (clean["home_score"] > clean["away_score"]).astype(int)
        if home_win.nunique() < 2:
            raise DataIncomplete("Training rows contain only one outcome class")

        margin = clean["home_score"] - clean["away_score"]
        total = clean["home_score"] + clean["away_score"]
        self.winner.fit(clean[features["winner"]], home_win)
        self.spread.fit(clean[features["spread"]], margin)
        self.total.fit(clean[features["total"]], total)
        self.features = features
        self._r2 = {
            "spread": float(self.spread.score(clean[features["spread"]], margin)),
            "total": float(self.total.score(clean[features["total"]], total)),
        }
        log.info("Fitted models on %s matches (%s dropped)", len(clean), len(frame) - len(clean))
        return self

    def predict(self, fixtures: pd.DataFrame) -> List[BasePrediction]:
        """Base predictions for assembled fixture rows.

        Rows missing a predictor are skipped with a warning.
        """
        if not self.fitted:
            raise RuntimeError("Model has not been fitted")
        if fixtures.empty:
            return []

        used = sorted(set().union(*self.features.values()))
        complete = fixtures[used].notna().all(axis=1)
        for game_id in fixtures.loc[~complete, "game_id"]:
            log.warning("Skipping fixture %s: incomplete features", game_id)
        rows = fixtures[complete]
        if rows.empty:
            return []

        s = self.settings
        spreads = self.spread.predict(rows[self.features["spread"]])
        totals = self.total.predict(rows[self.features["total"]])
        probs = self.winner.predict_proba(rows[self.features["winner"]])[:, 1]

        out: List[BasePrediction] = []
        for (_, row), spread, total, prob in zip(rows.iterrows(), spreads, totals, probs):
            spread = float(spread)
            out.append(
                BasePrediction(
                    game_id=str(row["game_id"]),
                    gameday=pd.Timestamp(row["gameday"]).date(),
                    home_team=str(row["home_team"]),
                    away_team=str(row["away_team"]),
                    spread=spread,
                    total=float(total),
                    home_win_probability=spread_to_win_probability(
                        spread, s.spread_sigma, s.win_prob_floor, s.win_prob_ceiling
                    ),
                    classifier_probability=float(prob),
                    season=int(row["season"]),
                    week=int(row["week"]),
                )
            )
        return out

    def evaluate_holdout(self, frame: pd.DataFrame, days: Optional[int] = None) -> HoldoutReport:
        """Train a fresh model on matches older than the trailing `days` and score the rest."""
        days = self.settings.holdout_days if days is None else days
        gameday = pd.to_datetime(frame["gameday"])
        cutoff = gameday.max() - timedelta(days=days)
        train, test = frame[gameday < cutoff], frame[gameday >= cutoff]

        trial = PredictiveModel(self.settings).fit(train)
        accuracy = spread_mae = total_mae = None
        test = test.dropna(subset=sorted(set().union(*trial.features.values())))
        if not test.empty:
            probs = trial.winner.predict_proba(test[trial.features["winner"]])[:, 1]
            actual_win = (test["home_score"] > test["away_score"]).astype(int).to_numpy()
            accuracy = float(np.mean((probs > 0.5).astype(int) == actual_win))
            spread_mae = float(
                mean_absolute_error(
                    test["home_score"] - test["away_score"],
                    trial.spread.predict(test[trial.features["spread"]]),
                )
            )
            total_mae = float(
                mean_absolute_error(
                    test["home_score"] + test["away_score"],
                    trial.total.predict(test[trial.features["total"]]),
                )
            )

        report = HoldoutReport(
            cutoff=cutoff,
            train_games=len(train),
            test_games=len(test),
            winner_accuracy=accuracy,
            spread_mae=spread_mae,
            total_mae=total_mae,
            spread_r2=trial._r2["spread"],
            total_r2=trial._r2["total"],
        )
        log.info("Holdout: %s", report.to_dict())
        return report
