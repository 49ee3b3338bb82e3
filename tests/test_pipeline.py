"""End-to-end weekly run on the synthetic league."""

from __future__ import annotations

from datetime import date
from unittest.mock import Mock

import pandas as pd
import pytest

from nfl_forecast.config import Settings
from nfl_forecast.exceptions import OrderingViolation
from nfl_forecast.models import InjuryReport, Severity, WeatherReading
from nfl_forecast.pipeline import WeeklyPipeline


def _settings(tmp_path) -> Settings:
    return Settings(rolling_window=3, out_dir=str(tmp_path / "data"))


class TestWeeklyPipeline:
    def test_full_run(self, tmp_path, games, fixtures):
        injuries = Mock(
            return_value=[
                InjuryReport(team="KC", player="X", position="WR", severity=Severity.OUT),
            ]
        )
        weather = Mock(return_value=WeatherReading(temp_max_f=25.0, wind_speed_mph=5.0))
        pipeline = WeeklyPipeline(_settings(tmp_path), injuries=injuries, weather=weather)

        result = pipeline.predict(games, fixtures)

        assert [r.game_id for r in result.records] == ["next_1", "next_2"]
        assert result.skipped_fixtures == ["next_3"]
        assert result.holdout is not None

        buf_kc = result.records[0]
        # Away side KC loses a receiver: home spread moves up
        assert buf_kc.availability_adjustment == pytest.approx(1.2)
        # BUF is an open venue, 25F costs a point
        assert buf_kc.environment_adjustment == pytest.approx(-1.0)
        buf_kc.verify()

        # DEN plays outdoors too; the weather feed is consulted per open venue
        assert weather.call_count == 2
        injuries.assert_called_once()

    def test_degraded_run_still_writes(self, tmp_path, games, fixtures):
        """Feeds that return nothing skip their stages; the artifact is still written."""
        pipeline = WeeklyPipeline(
            _settings(tmp_path), injuries=Mock(return_value=None), weather=Mock(return_value=None)
        )
        result = pipeline.write(pipeline.predict(games, fixtures), run_type="tuesday", today=date(2024, 1, 30))

        frame = pd.read_csv(result.output_path)
        assert result.output_path.name == "predictions_tuesday.csv"
        assert result.archive_path.name == "predictions_tuesday_2024-01-30.csv"
        assert result.archive_path.exists()
        assert frame["availability_skipped"].all()
        assert frame["environment_skipped"].all()
        assert (frame["final_spread"] == frame["base_spread"]).all()

    def test_out_of_order_history_aborts(self, tmp_path, games, fixtures):
        shuffled = [games[-1]] + games[:-1]
        with pytest.raises(OrderingViolation):
            WeeklyPipeline(_settings(tmp_path)).predict(shuffled, fixtures)
