"""External data feeds.

Network feeds (injury reports, weather) go through `request_json`, so they
share rate limiting, retries and the on-disk cache. A feed that stays down
after its retries returns None and the caller degrades the matching stage.

Historical matches, plays and depth charts are read from CSV exports.
"""

from __future__ import annotations

import logging
import time
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pandas as pd

from .cache import FileCache, request_key
from .config import Settings
from .constants import VENUES
from .environment import normalize_reading
from .exceptions import DataUnavailable, FeedClientError
from .http import RateLimiter, request_json
from .identity import NameResolver, team_resolver
from .models import (
    DepthChartEntry,
    Fixture,
    GameResult,
    InjuryReport,
    PlayEvent,
    Venue,
    WeatherReading,
    parse_severity,
)

log = logging.getLogger(__name__)

PathLike = Union[str, Path]

USER_AGENT = "Mozilla/5.0"


class _JsonFeed:
    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.Client] = None,
        cache: Optional[FileCache] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self._http = client or httpx.Client(headers={"User-Agent": USER_AGENT})
        self._cache = cache
        self._rl = RateLimiter(settings.rate_limit_rps)
        self._sleep = sleep

    def close(self) -> None:
        self._http.close()

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        cache_key = request_key(url, params)
        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                return cached

        payload = request_json(
            client=self._http,
            url=url,
            params=params,
            timeout=self.settings.timeout_seconds,
            max_attempts=self.settings.feed_max_attempts,
            backoff_base=self.settings.feed_backoff_base_seconds,
            rate_limiter=self._rl,
            sleep=self._sleep,
        )
        if self._cache is not None:
            self._cache.set(cache_key, payload)
        return payload


# =============================================================================
# Injury reports
# =============================================================================


def parse_injury_payload(
    payload: Dict[str, Any], teams: Optional[NameResolver] = None
) -> List[InjuryReport]:
    """Flatten the injuries document into one report per listed participant.

    Entries for unknown teams, without a player name or without a
    recognizable status are dropped.
    """
    teams = teams or team_resolver()
    out: List[InjuryReport] = []
    for team_entry in payload.get("injuries") or []:
        team = teams.resolve(team_entry.get("displayName"))
        if team is None:
            log.debug("Unknown team in injury feed: %r", team_entry.get("displayName"))
            continue
        for item in team_entry.get("injuries") or []:
            athlete = item.get("athlete") or {}
            player = athlete.get("displayName")
            severity = parse_severity(item.get("status"))
            if not player or severity is None:
                continue
            position = (athlete.get("position") or {}).get("abbreviation") or "UNK"
            note = (item.get("details") or {}).get("fantasyStatus")
            out.append(
                InjuryReport(
                    team=team, player=player, position=position, severity=severity, note=note
                )
            )
    return out


class InjuryFeed(_JsonFeed):
    def fetch(self) -> Optional[List[InjuryReport]]:
        """Current league-wide report snapshot, or None when the feed is unavailable."""
        try:
            payload = self._get(self.settings.injuries_url)
        except (DataUnavailable, FeedClientError, ValueError) as e:
            log.warning("Injury feed unavailable: %s", e)
            return None
        try:
            reports = parse_injury_payload(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            log.warning("Injury feed returned an unreadable document: %s", e)
            return None
        log.info("Fetched %s injury reports", len(reports))
        return reports


# =============================================================================
# Weather
# =============================================================================


def parse_weather_payload(payload: Dict[str, Any], gameday: date) -> Optional[WeatherReading]:
    """Pick `gameday` out of a daily forecast document and normalize its units.

    Units come from the payload's own ``daily_units`` block when present.
    """
    daily = payload.get("daily") or {}
    days = daily.get("time") or []
    key = gameday.isoformat()
    if key not in days:
        return None
    idx = days.index(key)

    def _at(field: str) -> Optional[float]:
        values = daily.get(field) or []
        return values[idx] if idx < len(values) else None

    units = payload.get("daily_units") or {}
    return normalize_reading(
        _at("temperature_2m_max"),
        _at("wind_speed_10m_max"),
        _at("precipitation_sum"),
        temperature_unit=units.get("temperature_2m_max", "fahrenheit"),
        wind_speed_unit=units.get("wind_speed_10m_max", "mph"),
        precipitation_unit=units.get("precipitation_sum", "mm"),
    )


class WeatherFeed(_JsonFeed):
    def fetch(self, venue: Venue, gameday: date) -> Optional[WeatherReading]:
        """Forecast for `venue` on `gameday`, or None when unavailable."""
        params = {
            "latitude": venue.lat,
            "longitude": venue.lon,
            "daily": "temperature_2m_max,precipitation_sum,wind_speed_10m_max",
            "temperature_unit": "fahrenheit",
            "wind_speed_unit": "mph",
            "timezone": "America/New_York",
            "start_date": gameday.isoformat(),
            "end_date": gameday.isoformat(),
        }
        try:
            payload = self._get(self.settings.weather_url, params)
        except (DataUnavailable, FeedClientError, ValueError) as e:
            log.warning("Weather feed unavailable for %s on %s: %s", venue.team, gameday, e)
            return None
        try:
            return parse_weather_payload(payload, gameday)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            log.warning("Unreadable forecast for %s on %s: %s", venue.team, gameday, e)
            return None


def venues() -> Dict[str, Venue]:
    return {
        team: Venue(team=team, lat=lat, lon=lon, roof=roof)
        for team, (lat, lon, roof) in VENUES.items()
    }


# =============================================================================
# CSV loaders
# =============================================================================


def _records(path: PathLike) -> List[Dict[str, Any]]:
    # Read everything as text; the record models do the typing.
    df = pd.read_csv(path, dtype=str)
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict(orient="records")


def load_games_csv(path: PathLike) -> List[GameResult]:
    """Completed matches; rows without both scores are ignored."""
    out: List[GameResult] = []
    for row in _records(path):
        if row.get("home_score") is None or row.get("away_score") is None:
            continue
        out.append(GameResult.model_validate(row))
    return out


def load_fixtures_csv(path: PathLike) -> List[Fixture]:
    return [Fixture.model_validate(row) for row in _records(path)]


def load_plays_csv(path: PathLike) -> List[PlayEvent]:
    return [PlayEvent.model_validate(row) for row in _records(path)]


def load_depth_chart_csv(path: PathLike) -> List[DepthChartEntry]:
    return [DepthChartEntry.model_validate(row) for row in _records(path)]
