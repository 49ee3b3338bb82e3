"""Weekly prediction run.

Sequencing:
    history -> ratings/rolling features -> model fit -> base predictions
    -> availability + environment cascade -> prediction artifact

Ordering problems in the history abort the run. Feed outages only degrade
the affected stage, and the artifact is still written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import pandas as pd

from .artifacts import safe_write_csv
from .availability import AvailabilityImpactResolver, AvailabilityStage
from .cascade import AdjustmentCascade, AdjustmentRecord, records_frame
from .config import Settings
from .efficiency import PasserTable, defense_ratings, game_efficiency, plays_frame
from .environment import EnvironmentStage
from .exceptions import DataIncomplete
from .features import FeatureAssembler
from .feeds import venues
from .model import HoldoutReport, PredictiveModel
from .models import (
    DepthChartEntry,
    Fixture,
    GameResult,
    InjuryReport,
    PlayEvent,
    Venue,
    WeatherReading,
)

log = logging.getLogger(__name__)

RUN_TYPES = ("manual", "tuesday", "thursday", "sunday")


@dataclass
class RunResult:
    records: List[AdjustmentRecord]
    holdout: Optional[HoldoutReport] = None
    output_path: Optional[Path] = None
    archive_path: Optional[Path] = None
    skipped_fixtures: List[str] = field(default_factory=list)

    @property
    def frame(self) -> pd.DataFrame:
        return records_frame(self.records)


class WeeklyPipeline:
    def __init__(
        self,
        settings: Settings,
        injuries: Optional[Callable[[], Optional[List[InjuryReport]]]] = None,
        weather: Optional[Callable[[Venue, date], Optional[WeatherReading]]] = None,
        max_workers: int = 1,
    ) -> None:
        """
        Args:
            settings: run configuration
            injuries: returns the current report snapshot (None = feed down)
            weather: returns a normalized reading for a venue and date
            max_workers: threads used for the per-fixture cascade
        """
        self.settings = settings
        self.injuries = injuries
        self.weather = weather
        self.max_workers = max_workers
        self.assembler = FeatureAssembler.from_settings(settings)
        self.resolver = AvailabilityImpactResolver.from_settings(settings)
        self.cascade = AdjustmentCascade.from_settings(settings)

    def predict(
        self,
        games: Sequence[GameResult],
        fixtures: Sequence[Fixture],
        plays: Optional[Sequence[PlayEvent]] = None,
        depth_chart: Optional[Sequence[DepthChartEntry]] = None,
    ) -> RunResult:
        """Build features, fit, and carry every predictable fixture through the cascade.

        Raises:
            OrderingViolation: `games` is not in chronological order.
        """
        s = self.settings
        pbp = plays_frame(plays) if plays else None
        efficiency = game_efficiency(pbp) if pbp is not None else None

        ctx = self.assembler.prepare(games, efficiency)
        training = self.assembler.training_frame(ctx)
        log.info("Training frame: %s rows", len(training))

        model = PredictiveModel(s)
        holdout = None
        try:
            holdout = model.evaluate_holdout(training)
        except (DataIncomplete, ValueError) as e:
            log.warning("Holdout evaluation failed: %s", e)
        model.fit(training)

        upcoming = [f for f in fixtures if not f.completed]
        rows = self.assembler.fixture_frame(ctx, upcoming)
        bases = model.predict(rows)
        predicted = {b.game_id for b in bases}
        skipped = [f.game_id for f in upcoming if f.game_id not in predicted]

        defenses = defense_ratings(pbp) if pbp is not None else {}
        passers = (
            PasserTable.build(
                pbp,
                depth_chart or [],
                position=s.critical_position,
                recent_weeks=s.recent_weeks,
            )
            if pbp is not None
            else None
        )
        reports = self.injuries() if self.injuries is not None else None
        if not reports:
            log.warning("No availability reports; availability stage will be skipped")

        availability = AvailabilityStage(self.resolver, reports, defenses, passers)
        environment = (
            EnvironmentStage(venues(), self.weather) if self.weather is not None else None
        )
        records = self.cascade.run(bases, availability, environment, max_workers=self.max_workers)
        return RunResult(records=records, holdout=holdout, skipped_fixtures=skipped)

    def write(
        self, result: RunResult, run_type: str = "manual", today: Optional[date] = None
    ) -> RunResult:
        """Persist the prediction artifact and a dated archive copy."""
        out_dir = Path(self.settings.out_dir)
        today = today or date.today()
        frame = result.frame
        result.output_path = safe_write_csv(frame, out_dir / f"predictions_{run_type}.csv")
        result.archive_path = safe_write_csv(
            frame, out_dir / "archive" / f"predictions_{run_type}_{today.isoformat()}.csv"
        )
        log.info("Wrote %s predictions to %s", len(frame), result.output_path)
        return result
