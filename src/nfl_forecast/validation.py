"""Post-game validation of stored predictions.

Scores a closed batch of predictions against realized results:
- winner accuracy
- spread MAE at every adjustment stage, and whether each stage helped
- total-points MAE
- signed bias of the final spread (positive = home side over-predicted)

A batch containing any unfinished fixture is rejected outright.

Usage:
    from nfl_forecast.validation import ValidationEngine, AccuracyLog

    report = ValidationEngine().validate(predictions_df, results)
    AccuracyLog(Path("data/validation")).log(report)
    for alert in report.alerts:
        print(f"WARNING: {alert}")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .artifacts import append_jsonl, read_jsonl
from .exceptions import ValidationPrecondition
from .models import Fixture

log = logging.getLogger(__name__)

# Stage columns in the prediction artifact, in cascade order
STAGE_COLUMNS: Dict[str, str] = {
    "base": "base_spread",
    "after_availability": "spread_after_availability",
    "after_environment": "spread_after_environment",
    "final": "final_spread",
}


@dataclass(frozen=True)
class ValidationRecord:
    """One fixture's predicted spreads against the realized result."""

    game_id: str
    home_team: str
    away_team: str
    stage_spreads: Dict[str, float]
    actual_spread: int
    actual_total: int
    predicted_total: float
    predicted_winner: str

    @property
    def actual_winner(self) -> Optional[str]:
        if self.actual_spread > 0:
            return self.home_team
        if self.actual_spread < 0:
            return self.away_team
        return None

    @property
    def winner_correct(self) -> bool:
        return self.predicted_winner == self.actual_winner

    @property
    def stage_errors(self) -> Dict[str, float]:
        """Signed error per stage (predicted - actual)."""
        return {s: v - self.actual_spread for s, v in self.stage_spreads.items()}

    def to_dict(self) -> Dict[str, object]:
        row: Dict[str, object] = {
            "game_id": self.game_id,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "predicted_winner": self.predicted_winner,
            "actual_winner": self.actual_winner,
            "winner_correct": self.winner_correct,
            "actual_spread": self.actual_spread,
            "actual_total": self.actual_total,
            "predicted_total": self.predicted_total,
        }
        for stage, value in self.stage_spreads.items():
            row[f"{stage}_spread"] = value
            row[f"{stage}_error"] = value - self.actual_spread
        return row


@dataclass
class ValidationReport:
    """Batch-level metrics for one validation run."""

    run_date: str
    games: int
    winner_accuracy: float
    stage_mae: Dict[str, float]
    total_mae: float
    bias: float
    stage_improved: Dict[str, bool] = field(default_factory=dict)
    flags: List[str] = field(default_factory=list)
    alerts: List[str] = field(default_factory=list)
    records: List[ValidationRecord] = field(default_factory=list)

    @property
    def spread_mae(self) -> float:
        return self.stage_mae["final"]

    def to_dict(self) -> dict:
        """Summary row for the accuracy log (records excluded)."""
        return {
            "run_date": self.run_date,
            "games": self.games,
            "winner_accuracy": self.winner_accuracy,
            "spread_mae": self.spread_mae,
            "stage_mae": dict(self.stage_mae),
            "total_mae": self.total_mae,
            "bias": self.bias,
            "stage_improved": dict(self.stage_improved),
            "flags": list(self.flags),
            "alerts": list(self.alerts),
        }

    def records_frame(self) -> pd.DataFrame:
        return pd.DataFrame([r.to_dict() for r in self.records])

    def __str__(self) -> str:
        lines = [
            f"Validated {self.games} games",
            f"  Winner accuracy: {self.winner_accuracy:.1%}",
        ]
        for stage, mae in self.stage_mae.items():
            lines.append(f"  {stage} MAE: {mae:.2f}")
        lines.append(f"  Total MAE: {self.total_mae:.2f}")
        lines.append(f"  Bias: {self.bias:+.2f} (+ favors home)")
        for flag in self.flags:
            lines.append(f"  FLAG: {flag}")
        for alert in self.alerts:
            lines.append(f"  ALERT: {alert}")
        return "\n".join(lines)


class ValidationEngine:
    """Scores completed prediction batches."""

    # Alert thresholds
    ACCURACY_ALERT = 0.60
    SPREAD_MAE_ALERT = 12.0
    BIAS_ALERT = 2.0

    REQUIRED_COLS = ["game_id", "predicted_winner", "predicted_total", *STAGE_COLUMNS.values()]

    def match_results(
        self, predictions: pd.DataFrame, results: Sequence[Fixture]
    ) -> List[ValidationRecord]:
        """Pair each prediction with its result.

        Raises:
            ValidationPrecondition: a predicted fixture has no result or no final score.
        """
        missing_cols = [c for c in self.REQUIRED_COLS if c not in predictions.columns]
        if missing_cols:
            raise ValueError(f"Predictions missing required columns: {missing_cols}")

        by_id = {r.game_id: r for r in results}
        pending = [
            str(gid)
            for gid in predictions["game_id"]
            if str(gid) not in by_id or not by_id[str(gid)].completed
        ]
        if pending:
            raise ValidationPrecondition(
                f"Batch not ready: {len(pending)} fixture(s) without a final score: "
                f"{', '.join(pending)}"
            )

        records: List[ValidationRecord] = []
        for _, row in predictions.iterrows():
            result = by_id[str(row["game_id"])]
            records.append(
                ValidationRecord(
                    game_id=result.game_id,
                    home_team=result.home_team,
                    away_team=result.away_team,
                    stage_spreads={s: float(row[c]) for s, c in STAGE_COLUMNS.items()},
                    actual_spread=result.home_score - result.away_score,
                    actual_total=result.home_score + result.away_score,
                    predicted_total=float(row["predicted_total"]),
                    predicted_winner=str(row["predicted_winner"]),
                )
            )
        return records

    def validate(
        self,
        predictions: pd.DataFrame,
        results: Sequence[Fixture],
        run_date: Optional[date] = None,
    ) -> ValidationReport:
        """Score a closed batch.

        Raises:
            ValidationPrecondition: the batch is empty or not fully played.
        """
        if predictions.empty:
            raise ValidationPrecondition("Batch not ready: no predictions to validate")
        records = self.match_results(predictions, results)
        n = len(records)

        accuracy = sum(r.winner_correct for r in records) / n
        stage_mae = {
            stage: sum(abs(r.stage_errors[stage]) for r in records) / n for stage in STAGE_COLUMNS
        }
        total_mae = sum(abs(r.predicted_total - r.actual_total) for r in records) / n
        bias = sum(r.stage_errors["final"] for r in records) / n

        stages = list(STAGE_COLUMNS)
        improved: Dict[str, bool] = {}
        flags: List[str] = []
        for prev, cur in zip(stages, stages[1:]):
            if cur == "final":
                continue
            improved[cur] = stage_mae[cur] <= stage_mae[prev]
            if not improved[cur]:
                flags.append(
                    f"{cur} MAE {stage_mae[cur]:.2f} worse than {prev} {stage_mae[prev]:.2f}"
                )

        alerts: List[str] = []
        if accuracy < self.ACCURACY_ALERT:
            alerts.append(f"Winner accuracy below {self.ACCURACY_ALERT:.0%}: {accuracy:.1%}")
        if stage_mae["final"] > self.SPREAD_MAE_ALERT:
            alerts.append(
                f"Spread MAE above {self.SPREAD_MAE_ALERT:.0f} points: {stage_mae['final']:.2f}"
            )
        if abs(bias) > self.BIAS_ALERT:
            alerts.append(f"Model bias exceeds {self.BIAS_ALERT:.0f} points: {bias:+.2f}")

        report = ValidationReport(
            run_date=(run_date or date.today()).isoformat(),
            games=n,
            winner_accuracy=accuracy,
            stage_mae=stage_mae,
            total_mae=total_mae,
            bias=bias,
            stage_improved=improved,
            flags=flags,
            alerts=alerts,
            records=records,
        )
        for alert in alerts:
            log.warning(alert)
        log.info("Validated %s games: accuracy %.3f, MAE %.2f", n, accuracy, stage_mae["final"])
        return report


class AccuracyLog:
    """Append-only log of validation summaries."""

    def __init__(self, log_dir: Path = Path("data/validation")):
        self.log_dir = log_dir
        self.log_file = log_dir / "accuracy_log.jsonl"
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def log(self, report: ValidationReport) -> None:
        entry = report.to_dict()
        entry["logged_at"] = datetime.now().isoformat(timespec="seconds")
        append_jsonl(self.log_file, [entry])

    def recent(self, n: int = 10) -> List[dict]:
        return read_jsonl(self.log_file)[-n:]
