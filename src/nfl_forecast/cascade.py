"""Staged spread adjustments with provenance.

Each fixture moves through a fixed sequence of stages:

    base -> after_availability -> after_environment -> final

Every stage stores the signed adjustment it applied, the resulting spread,
win probability and winner, and the justification text behind it. A stage
whose upstream data is missing forwards the prior spread unchanged and is
marked skipped; the fixture still reaches final.

The stored adjustments reproduce the final spread exactly when replayed in
the same order (`AdjustmentRecord.replay`).
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .availability import AvailabilityAdjustment
from .config import Settings
from .environment import EnvironmentImpact
from .exceptions import DataUnavailable, ForecastError
from .models import Fixture
from .prediction import (
    BasePrediction,
    cover_probability,
    predicted_winner,
    spread_to_win_probability,
)

log = logging.getLogger(__name__)

AvailabilityProvider = Callable[[Fixture], Optional[AvailabilityAdjustment]]
EnvironmentProvider = Callable[[Fixture, float], Optional[EnvironmentImpact]]


class Stage(str, Enum):
    BASE = "base"
    AFTER_AVAILABILITY = "after_availability"
    AFTER_ENVIRONMENT = "after_environment"
    FINAL = "final"


@dataclass(frozen=True)
class StageRecord:
    stage: Stage
    adjustment: float  # Signed points applied at this stage
    spread: float  # Home margin after this stage
    win_probability: float  # Home win probability at this spread
    cover_probability: float  # P(home margin > 0), unclipped
    winner: str
    justifications: Tuple[str, ...] = ()
    skipped: bool = False
    skip_reason: Optional[str] = None


@dataclass(frozen=True)
class AdjustmentRecord:
    """All stages for one fixture, in order."""

    game_id: str
    gameday: str
    home_team: str
    away_team: str
    predicted_total: float
    stages: Tuple[StageRecord, ...]
    home_availability_impact: float = 0.0
    away_availability_impact: float = 0.0
    environment_reading: Optional[Dict[str, Optional[float]]] = None

    def stage(self, stage: Stage) -> StageRecord:
        for s in self.stages:
            if s.stage == stage:
                return s
        raise KeyError(stage)

    @property
    def base(self) -> StageRecord:
        return self.stage(Stage.BASE)

    @property
    def after_availability(self) -> StageRecord:
        return self.stage(Stage.AFTER_AVAILABILITY)

    @property
    def after_environment(self) -> StageRecord:
        return self.stage(Stage.AFTER_ENVIRONMENT)

    @property
    def final(self) -> StageRecord:
        return self.stage(Stage.FINAL)

    @property
    def availability_adjustment(self) -> float:
        return self.after_availability.adjustment

    @property
    def environment_adjustment(self) -> float:
        return self.after_environment.adjustment

    def replay(self) -> float:
        """Recompute the final spread from the base spread and stored adjustments."""
        spread = self.base.spread
        for s in self.stages[1:]:
            spread = spread + s.adjustment
        return spread

    def verify(self, tolerance: float = 1e-9) -> None:
        """Check every stage spread against prior spread + adjustment.

        Raises:
            ForecastError: the chain does not reproduce the stored values.
        """
        for prev, cur in zip(self.stages, self.stages[1:]):
            if abs(prev.spread + cur.adjustment - cur.spread) > tolerance:
                raise ForecastError(
                    f"{self.game_id}: {cur.stage.value} spread {cur.spread} != "
                    f"{prev.spread} + {cur.adjustment}"
                )
        if abs(self.replay() - self.final.spread) > tolerance:
            raise ForecastError(f"{self.game_id}: replayed spread does not match final")
        if self.final.spread != self.after_environment.spread:
            raise ForecastError(f"{self.game_id}: final differs from after_environment")

    def to_row(self) -> Dict[str, object]:
        """Flat output row with every stage value present."""
        base, avail, env = self.base, self.after_availability, self.after_environment
        final = self.final
        reading = self.environment_reading or {}
        return {
            "game_id": self.game_id,
            "game_date": self.gameday,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "predicted_winner": final.winner,
            "final_spread": final.spread,
            "final_home_win_probability": final.win_probability,
            "final_cover_probability": final.cover_probability,
            "predicted_total": self.predicted_total,
            "base_spread": base.spread,
            "base_home_win_probability": base.win_probability,
            "base_cover_probability": base.cover_probability,
            "base_winner": base.winner,
            "availability_adjustment": avail.adjustment,
            "home_availability_impact": self.home_availability_impact,
            "away_availability_impact": self.away_availability_impact,
            "spread_after_availability": avail.spread,
            "home_win_probability_after_availability": avail.win_probability,
            "cover_probability_after_availability": avail.cover_probability,
            "availability_skipped": avail.skipped,
            "availability_notes": "; ".join(avail.justifications),
            "environment_adjustment": env.adjustment,
            "spread_after_environment": env.spread,
            "environment_skipped": env.skipped,
            "environment_notes": "; ".join(env.justifications),
            "temp_max_f": reading.get("temp_max_f"),
            "wind_speed_mph": reading.get("wind_speed_mph"),
            "precipitation_in": reading.get("precipitation_in"),
        }


class AdjustmentCascade:
    def __init__(
        self,
        sigma: float = 13.5,
        floor: float = 0.05,
        ceiling: float = 0.95,
        cover_sigma: float = 10.0,
    ) -> None:
        self.sigma = sigma
        self.cover_sigma = cover_sigma
        self.floor = floor
        self.ceiling = ceiling

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdjustmentCascade":
        return cls(
            settings.spread_sigma,
            settings.win_prob_floor,
            settings.win_prob_ceiling,
            settings.cover_sigma,
        )

    def _stage(
        self,
        stage: Stage,
        base: BasePrediction,
        prior_spread: float,
        adjustment: float,
        justifications: Sequence[str] = (),
        skip_reason: Optional[str] = None,
    ) -> StageRecord:
        spread = prior_spread + adjustment
        return StageRecord(
            stage=stage,
            adjustment=adjustment,
            spread=spread,
            win_probability=spread_to_win_probability(spread, self.sigma, self.floor, self.ceiling),
            cover_probability=cover_probability(spread, sigma=self.cover_sigma),
            winner=predicted_winner(spread, base.home_team, base.away_team),
            justifications=tuple(justifications),
            skipped=skip_reason is not None,
            skip_reason=skip_reason,
        )

    def run_fixture(
        self,
        base: BasePrediction,
        availability: Optional[AvailabilityProvider] = None,
        environment: Optional[EnvironmentProvider] = None,
    ) -> AdjustmentRecord:
        """Carry one base prediction through every stage to final."""
        fixture = Fixture(
            game_id=base.game_id,
            season=base.season,
            week=base.week,
            gameday=base.gameday,
            home_team=base.home_team,
            away_team=base.away_team,
        )
        base_stage = self._stage(Stage.BASE, base, base.spread, 0.0, ("model prediction",))

        # Availability
        avail = None
        if availability is not None:
            try:
                avail = availability(fixture)
            except DataUnavailable as e:
                log.warning("%s: availability unavailable: %s", base.game_id, e)
        if avail is None or avail.no_data:
            after_avail = self._stage(
                Stage.AFTER_AVAILABILITY, base, base_stage.spread, 0.0,
                ("no data",), skip_reason="no data",
            )
            home_impact = away_impact = 0.0
        else:
            after_avail = self._stage(
                Stage.AFTER_AVAILABILITY, base, base_stage.spread, avail.net, avail.notes
            )
            home_impact, away_impact = avail.home.total, avail.away.total

        # Environment, computed on the post-availability spread
        env = None
        if environment is not None:
            try:
                env = environment(fixture, after_avail.spread)
            except DataUnavailable as e:
                log.warning("%s: environment unavailable: %s", base.game_id, e)
        if env is None or env.no_data:
            after_env = self._stage(
                Stage.AFTER_ENVIRONMENT, base, after_avail.spread, 0.0,
                ("no data",), skip_reason="no data",
            )
        elif not env.applicable:
            after_env = self._stage(
                Stage.AFTER_ENVIRONMENT, base, after_avail.spread, 0.0,
                env.notes, skip_reason="not applicable",
            )
        else:
            after_env = self._stage(
                Stage.AFTER_ENVIRONMENT, base, after_avail.spread, env.points, env.notes
            )

        final = self._stage(Stage.FINAL, base, after_env.spread, 0.0)
        reading = env.reading.model_dump() if env is not None and env.reading is not None else None

        return AdjustmentRecord(
            game_id=base.game_id,
            gameday=base.gameday.isoformat(),
            home_team=base.home_team,
            away_team=base.away_team,
            predicted_total=base.total,
            stages=(base_stage, after_avail, after_env, final),
            home_availability_impact=home_impact,
            away_availability_impact=away_impact,
            environment_reading=reading,
        )

    def run(
        self,
        bases: Sequence[BasePrediction],
        availability: Optional[AvailabilityProvider] = None,
        environment: Optional[EnvironmentProvider] = None,
        max_workers: int = 1,
    ) -> List[AdjustmentRecord]:
        """Run every fixture. Output order matches `bases` regardless of `max_workers`."""

        def _one(base: BasePrediction) -> AdjustmentRecord:
            record = self.run_fixture(base, availability, environment)
            record.verify()
            return record

        if max_workers <= 1:
            records = [_one(b) for b in bases]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                records = list(executor.map(_one, bases))

        skipped = sum(
            1 for r in records if r.after_availability.skipped or r.after_environment.skipped
        )
        log.info("Cascade complete: %s fixtures, %s with skipped stages", len(records), skipped)
        return records


def records_frame(records: Sequence[AdjustmentRecord]) -> pd.DataFrame:
    return pd.DataFrame([r.to_row() for r in records])
