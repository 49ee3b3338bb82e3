"""Tests for post-game validation."""

from __future__ import annotations

from datetime import date

import pandas as pd
import pytest

from nfl_forecast.exceptions import ValidationPrecondition
from nfl_forecast.models import Fixture
from nfl_forecast.validation import AccuracyLog, ValidationEngine


def _prediction(gid, home, away, base, avail, env, total=45.0):
    final = env
    return {
        "game_id": gid,
        "home_team": home,
        "away_team": away,
        "predicted_winner": home if final > 0 else away,
        "predicted_total": total,
        "base_spread": base,
        "spread_after_availability": avail,
        "spread_after_environment": env,
        "final_spread": final,
    }


def _result(gid, home, away, hs, as_):
    return Fixture(
        game_id=gid,
        season=2024,
        week=12,
        gameday=date(2024, 11, 24),
        home_team=home,
        away_team=away,
        home_score=hs,
        away_score=as_,
    )


PREDICTIONS = pd.DataFrame(
    [
        _prediction("g1", "BUF", "KC", 3.0, 2.0, 1.0),
        _prediction("g2", "DAL", "PHI", -4.0, -6.0, -6.0),
        _prediction("g3", "GB", "CHI", 7.0, 7.0, 5.0, total=40.0),
    ]
)

RESULTS = [
    _result("g1", "BUF", "KC", 30, 21),  # +9
    _result("g2", "DAL", "PHI", 10, 34),  # -24
    _result("g3", "GB", "CHI", 20, 24),  # -4
]


class TestValidate:
    """Test batch metrics."""

    def test_metrics(self):
        report = ValidationEngine().validate(PREDICTIONS, RESULTS, run_date=date(2024, 11, 26))
        assert report.games == 3
        assert report.run_date == "2024-11-26"
        assert report.winner_accuracy == pytest.approx(2 / 3)
        # base errors: -6, 20, 11
        assert report.stage_mae["base"] == pytest.approx(37 / 3)
        # final errors: -8, 18, 9
        assert report.spread_mae == pytest.approx(35 / 3)
        assert report.bias == pytest.approx(19 / 3)
        # totals: 51, 44, 44 vs 45, 45, 40
        assert report.total_mae == pytest.approx((6 + 1 + 4) / 3)

    def test_stage_improvement_reported(self):
        """A stage that helps is marked improved; none are rejected."""
        report = ValidationEngine().validate(PREDICTIONS, RESULTS)
        # availability errors: -7, 18, 11 -> 36/3
        assert report.stage_mae["after_availability"] == pytest.approx(12.0)
        assert report.stage_improved == {"after_availability": True, "after_environment": True}
        assert report.flags == []

    def test_worse_stage_flagged(self):
        """A stage that hurts is flagged, not rejected."""
        preds = pd.DataFrame([_prediction("g1", "BUF", "KC", 9.0, 2.0, 2.0)])
        report = ValidationEngine().validate(preds, RESULTS[:1])
        assert report.stage_improved["after_availability"] is False
        assert len(report.flags) == 1
        assert report.games == 1

    def test_bias_alert(self):
        report = ValidationEngine().validate(PREDICTIONS, RESULTS)
        assert len(report.alerts) == 1
        assert "bias" in report.alerts[0]

    def test_accuracy_alert(self):
        report = ValidationEngine().validate(PREDICTIONS.iloc[2:], RESULTS)
        joined = " ".join(report.alerts)
        assert "accuracy below 60%" in joined
        assert "bias" in joined

    def test_no_alerts_on_good_batch(self):
        preds = pd.DataFrame([_prediction("g1", "BUF", "KC", 8.0, 8.5, 9.0, total=51.0)])
        report = ValidationEngine().validate(preds, RESULTS[:1])
        assert report.alerts == []
        assert report.winner_accuracy == 1.0

    def test_tie_is_incorrect(self):
        preds = pd.DataFrame([_prediction("g1", "BUF", "KC", 1.0, 1.0, 1.0)])
        report = ValidationEngine().validate(preds, [_result("g1", "BUF", "KC", 20, 20)])
        assert report.records[0].actual_winner is None
        assert report.winner_accuracy == 0.0

    def test_records_frame(self):
        report = ValidationEngine().validate(PREDICTIONS, RESULTS)
        frame = report.records_frame()
        assert len(frame) == 3
        assert frame.loc[0, "final_error"] == pytest.approx(-8.0)
        assert frame.loc[1, "winner_correct"]

    def test_str(self):
        text = str(ValidationEngine().validate(PREDICTIONS, RESULTS))
        assert "Validated 3 games" in text
        assert "ALERT" in text


class TestNotReady:
    """Incomplete batches are refused outright."""

    def test_missing_score(self):
        results = RESULTS[:2] + [
            Fixture(
                game_id="g3",
                season=2024,
                week=12,
                gameday=date(2024, 11, 24),
                home_team="GB",
                away_team="CHI",
            )
        ]
        with pytest.raises(ValidationPrecondition, match="not ready"):
            ValidationEngine().validate(PREDICTIONS, results)

    def test_missing_fixture(self):
        with pytest.raises(ValidationPrecondition, match="g3"):
            ValidationEngine().validate(PREDICTIONS, RESULTS[:2])

    def test_empty_batch(self):
        with pytest.raises(ValidationPrecondition):
            ValidationEngine().validate(PREDICTIONS.iloc[0:0], RESULTS)

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="final_spread"):
            ValidationEngine().validate(PREDICTIONS.drop(columns=["final_spread"]), RESULTS)


class TestAccuracyLog:
    """Test the append-only accuracy log."""

    def test_append_and_read(self, tmp_path):
        log = AccuracyLog(tmp_path / "validation")
        engine = ValidationEngine()
        log.log(engine.validate(PREDICTIONS, RESULTS, run_date=date(2024, 11, 26)))
        log.log(engine.validate(PREDICTIONS.iloc[:1], RESULTS, run_date=date(2024, 12, 3)))

        entries = log.recent(10)
        assert [e["run_date"] for e in entries] == ["2024-11-26", "2024-12-03"]
        assert entries[0]["games"] == 3
        assert entries[0]["stage_mae"]["base"] == pytest.approx(37 / 3)
        assert "logged_at" in entries[1]
        assert len(log.recent(1)) == 1

    def test_empty_log(self, tmp_path):
        assert AccuracyLog(tmp_path).recent() == []
