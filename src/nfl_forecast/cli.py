from __future__ import annotations

import argparse
import logging
from pathlib import Path

import pandas as pd
from dotenv import load_dotenv

from .cache import FileCache
from .config import Settings
from .exceptions import ValidationPrecondition
from .feeds import (
    InjuryFeed,
    WeatherFeed,
    load_depth_chart_csv,
    load_fixtures_csv,
    load_games_csv,
    load_plays_csv,
)
from .pipeline import RUN_TYPES, WeeklyPipeline
from .ratings import sort_games
from .validation import AccuracyLog, ValidationEngine

log = logging.getLogger(__name__)

# =============================================================================
# Output File Naming Convention
# =============================================================================
#   {out_dir}/predictions_{run_type}.csv                  - latest predictions
#   {out_dir}/archive/predictions_{run_type}_{date}.csv   - dated copy
#   {out_dir}/validation/validation_details_{date}.csv    - per-fixture errors
#   {out_dir}/validation/accuracy_log.jsonl               - one line per batch
# =============================================================================


def _predict(args: argparse.Namespace, settings: Settings) -> None:
    games = sort_games(load_games_csv(args.games))
    fixtures = load_fixtures_csv(args.fixtures)
    plays = load_plays_csv(args.plays) if args.plays else None
    depth = load_depth_chart_csv(args.depth_chart) if args.depth_chart else None

    injury_feed = weather_feed = None
    if not args.offline:
        ttl = settings.cache_ttl_seconds
        injury_feed = InjuryFeed(settings, cache=FileCache(settings.cache_dir, ttl, "injuries"))
        weather_feed = WeatherFeed(settings, cache=FileCache(settings.cache_dir, ttl, "weather"))

    try:
        pipeline = WeeklyPipeline(
            settings,
            injuries=injury_feed.fetch if injury_feed else None,
            weather=weather_feed.fetch if weather_feed else None,
            max_workers=args.workers,
        )
        result = pipeline.write(
            pipeline.predict(games, fixtures, plays, depth), run_type=args.run_type
        )
    finally:
        if injury_feed:
            injury_feed.close()
        if weather_feed:
            weather_feed.close()

    print(f"Wrote {len(result.records)} predictions:")
    print(f"  -> {result.output_path}")
    print(f"  -> {result.archive_path}")
    if result.skipped_fixtures:
        print(f"Skipped (insufficient history): {', '.join(result.skipped_fixtures)}")
    if result.holdout is not None:
        h = result.holdout
        if h.winner_accuracy is not None:
            print(f"Holdout accuracy: {h.winner_accuracy:.1%}  spread MAE: {h.spread_mae:.2f}")

    for rec in result.records:
        final = rec.final
        flags = []
        if rec.after_availability.skipped:
            flags.append("availability skipped")
        if rec.after_environment.skipped:
            flags.append(f"environment {rec.after_environment.skip_reason}")
        suffix = f"  [{', '.join(flags)}]" if flags else ""
        print(
            f"{rec.away_team} @ {rec.home_team}: {final.winner} "
            f"({final.spread:+.1f}, {final.win_probability:.0%}){suffix}"
        )


def _validate(args: argparse.Namespace, settings: Settings) -> None:
    predictions = pd.read_csv(args.predictions, dtype={"game_id": str})
    results = load_fixtures_csv(args.results)
    out_dir = Path(settings.out_dir) / "validation"

    try:
        report = ValidationEngine().validate(predictions, results)
    except ValidationPrecondition as e:
        print(f"NOT READY: {e}")
        raise SystemExit(2)

    out_dir.mkdir(parents=True, exist_ok=True)
    details = out_dir / f"validation_details_{report.run_date}.csv"
    report.records_frame().to_csv(details, index=False)
    AccuracyLog(out_dir).log(report)
    print(report)
    print(f"Details saved to: {details}")


def _history(args: argparse.Namespace, settings: Settings) -> None:
    runs = AccuracyLog(Path(settings.out_dir) / "validation").recent(args.n)
    if not runs:
        print("No validation history found")
        return
    for run in reversed(runs):
        print(
            f"{run['run_date']}: {run['games']} games, "
            f"accuracy {run['winner_accuracy']:.1%}, MAE {run['spread_mae']:.2f}, "
            f"bias {run['bias']:+.2f}"
        )


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s"
    )

    parser = argparse.ArgumentParser(prog="nfl-forecast")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_pred = sub.add_parser("predict", help="Predict upcoming fixtures")
    p_pred.add_argument("--games", required=True, help="CSV of completed matches")
    p_pred.add_argument("--fixtures", required=True, help="CSV of fixtures to predict")
    p_pred.add_argument("--plays", help="CSV of play-level events")
    p_pred.add_argument("--depth-chart", help="CSV of depth chart entries")
    p_pred.add_argument("--run-type", choices=RUN_TYPES, default="manual")
    p_pred.add_argument("--workers", type=int, default=1, help="Threads for the cascade")
    p_pred.add_argument("--offline", action="store_true", help="Skip injury and weather feeds")

    p_val = sub.add_parser("validate", help="Score a completed prediction batch")
    p_val.add_argument("--predictions", required=True, help="Prediction artifact CSV")
    p_val.add_argument("--results", required=True, help="CSV of fixtures with final scores")

    p_hist = sub.add_parser("history", help="Show recent validation runs")
    p_hist.add_argument("--n", type=int, default=5)

    args = parser.parse_args()
    settings = Settings.from_env()

    if args.cmd == "predict":
        _predict(args, settings)
    elif args.cmd == "validate":
        _validate(args, settings)
    elif args.cmd == "history":
        _history(args, settings)


if __name__ == "__main__":
    main()
