from __future__ import annotations

from dataclasses import dataclass
import os


def _env_int(key: str, default: int) -> int:
    val = os.getenv(key)
    return default if val is None or val.strip() == "" else int(val)


def _env_float(key: str, default: float) -> float:
    val = os.getenv(key)
    return default if val is None or val.strip() == "" else float(val)


def _env_str(key: str, default: str) -> str:
    val = os.getenv(key)
    return default if val is None or val.strip() == "" else val


@dataclass(frozen=True)
class Settings:
    # Rating engine
    elo_k: float = 20.0
    elo_initial: float = 1500.0

    # Rolling features
    rolling_window: int = 10
    form_window: int = 3
    default_rest_days: int = 7

    # Win probability mapping
    spread_sigma: float = 13.5
    cover_sigma: float = 10.0
    win_prob_floor: float = 0.05
    win_prob_ceiling: float = 0.95

    # Availability impact
    critical_position: str = "QB"
    starter_play_threshold: int = 50
    recent_weeks: int = 3

    # Model training
    holdout_days: int = 28

    # External feeds
    injuries_url: str = "https://site.web.api.espn.com/apis/site/v2/sports/football/nfl/injuries"
    weather_url: str = "https://api.open-meteo.com/v1/forecast"
    timeout_seconds: float = 20.0
    feed_max_attempts: int = 3
    feed_backoff_base_seconds: float = 2.0
    rate_limit_rps: float = 2.0
    cache_dir: str = ".cache/nfl_forecast"
    cache_ttl_seconds: int = 3600
    out_dir: str = "data"

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            elo_k=_env_float("NFL_FORECAST_ELO_K", 20.0),
            elo_initial=_env_float("NFL_FORECAST_ELO_INITIAL", 1500.0),
            rolling_window=_env_int("NFL_FORECAST_ROLLING_WINDOW", 10),
            form_window=_env_int("NFL_FORECAST_FORM_WINDOW", 3),
            default_rest_days=_env_int("NFL_FORECAST_DEFAULT_REST_DAYS", 7),
            spread_sigma=_env_float("NFL_FORECAST_SPREAD_SIGMA", 13.5),
            cover_sigma=_env_float("NFL_FORECAST_COVER_SIGMA", 10.0),
            win_prob_floor=_env_float("NFL_FORECAST_WIN_PROB_FLOOR", 0.05),
            win_prob_ceiling=_env_float("NFL_FORECAST_WIN_PROB_CEILING", 0.95),
            critical_position=_env_str("NFL_FORECAST_CRITICAL_POSITION", "QB"),
            starter_play_threshold=_env_int("NFL_FORECAST_STARTER_PLAY_THRESHOLD", 50),
            recent_weeks=_env_int("NFL_FORECAST_RECENT_WEEKS", 3),
            holdout_days=_env_int("NFL_FORECAST_HOLDOUT_DAYS", 28),
            injuries_url=_env_str(
                "NFL_FORECAST_INJURIES_URL",
                "https://site.web.api.espn.com/apis/site/v2/sports/football/nfl/injuries",
            ),
            weather_url=_env_str(
                "NFL_FORECAST_WEATHER_URL", "https://api.open-meteo.com/v1/forecast"
            ),
            timeout_seconds=_env_float("NFL_FORECAST_TIMEOUT_SECONDS", 20.0),
            feed_max_attempts=_env_int("NFL_FORECAST_FEED_MAX_ATTEMPTS", 3),
            feed_backoff_base_seconds=_env_float("NFL_FORECAST_FEED_BACKOFF_BASE_SECONDS", 2.0),
            rate_limit_rps=_env_float("NFL_FORECAST_RATE_LIMIT_RPS", 2.0),
            cache_dir=_env_str("NFL_FORECAST_CACHE_DIR", ".cache/nfl_forecast"),
            cache_ttl_seconds=_env_int("NFL_FORECAST_CACHE_TTL_SECONDS", 3600),
            out_dir=_env_str("NFL_FORECAST_OUT_DIR", "data"),
        )
