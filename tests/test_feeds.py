"""Tests for feed parsing and the CSV loaders."""

from __future__ import annotations

from datetime import date
from unittest.mock import Mock

import httpx
import pytest

from nfl_forecast.cache import FileCache
from nfl_forecast.cascade import AdjustmentCascade
from nfl_forecast.config import Settings
from nfl_forecast.environment import EnvironmentStage
from nfl_forecast.feeds import (
    InjuryFeed,
    WeatherFeed,
    load_fixtures_csv,
    load_games_csv,
    parse_injury_payload,
    parse_weather_payload,
    venues,
)
from nfl_forecast.models import Severity
from nfl_forecast.prediction import BasePrediction

INJURY_PAYLOAD = {
    "injuries": [
        {
            "displayName": "Kansas City Chiefs",
            "injuries": [
                {
                    "status": "Out",
                    "athlete": {"displayName": "Patrick Mahomes", "position": {"abbreviation": "QB"}},
                    "details": {"fantasyStatus": "ankle"},
                },
                {
                    "status": "Injured Reserve",
                    "athlete": {"displayName": "Rashee Rice", "position": {"abbreviation": "WR"}},
                },
                {
                    "status": "Active",
                    "athlete": {"displayName": "Travis Kelce", "position": {"abbreviation": "TE"}},
                },
            ],
        },
        {
            "displayName": "Buffalo Bills",
            "injuries": [
                {"status": "Questionable", "athlete": {"displayName": "James Cook"}},
            ],
        },
        {"displayName": "London Monarchs", "injuries": [{"status": "Out"}]},
    ]
}

WEATHER_PAYLOAD = {
    "daily_units": {
        "temperature_2m_max": "°F",
        "wind_speed_10m_max": "mp/h",
        "precipitation_sum": "mm",
    },
    "daily": {
        "time": ["2024-11-23", "2024-11-24"],
        "temperature_2m_max": [41.0, 35.5],
        "wind_speed_10m_max": [8.0, 18.0],
        "precipitation_sum": [0.0, 12.7],
    },
}


def _settings(**kw) -> Settings:
    return Settings(feed_max_attempts=2, feed_backoff_base_seconds=0.0, rate_limit_rps=0, **kw)


class TestInjuryPayload:
    def test_parse(self):
        reports = parse_injury_payload(INJURY_PAYLOAD)
        assert [(r.team, r.player, r.position, r.severity) for r in reports] == [
            ("KC", "Patrick Mahomes", "QB", Severity.OUT),
            ("KC", "Rashee Rice", "WR", Severity.LONG_TERM_OUT),
            ("BUF", "James Cook", "UNK", Severity.QUESTIONABLE),
        ]
        assert reports[0].note == "ankle"

    def test_empty(self):
        assert parse_injury_payload({}) == []


class TestWeatherPayload:
    def test_picks_day_and_converts(self):
        """Units come from the document's own daily_units block."""
        reading = parse_weather_payload(WEATHER_PAYLOAD, date(2024, 11, 24))
        assert reading.temp_max_f == 35.5
        assert reading.wind_speed_mph == 18.0
        assert reading.precipitation_in == pytest.approx(0.5)

    def test_day_missing(self):
        assert parse_weather_payload(WEATHER_PAYLOAD, date(2024, 12, 1)) is None

    def test_knots_converted(self):
        payload = dict(WEATHER_PAYLOAD, daily_units={"wind_speed_10m_max": "kn"})
        reading = parse_weather_payload(payload, date(2024, 11, 24))
        assert reading.wind_speed_mph == pytest.approx(20.714, abs=1e-3)

    def test_unknown_unit_rejected(self):
        payload = dict(WEATHER_PAYLOAD, daily_units={"wind_speed_10m_max": "furlongs"})
        with pytest.raises(ValueError):
            parse_weather_payload(payload, date(2024, 11, 24))


class TestInjuryFeed:
    def test_fetch(self, tmp_path):
        client = Mock(spec=httpx.Client)
        client.request.return_value = httpx.Response(200, json=INJURY_PAYLOAD)
        cache = FileCache(str(tmp_path), ttl_seconds=60)
        feed = InjuryFeed(_settings(), client=client, cache=cache, sleep=Mock())

        assert len(feed.fetch()) == 3
        # Second call is served from the cache
        assert len(feed.fetch()) == 3
        assert client.request.call_count == 1

    def test_outage_returns_none(self):
        client = Mock(spec=httpx.Client)
        client.request.return_value = httpx.Response(503)
        sleep = Mock()
        feed = InjuryFeed(_settings(), client=client, sleep=sleep)
        assert feed.fetch() is None
        assert client.request.call_count == 2
        sleep.assert_called_once_with(0.0)

    def test_malformed_document_returns_none(self):
        """A document of the wrong shape is treated as no data."""
        client = Mock(spec=httpx.Client)
        client.request.return_value = httpx.Response(200, json={"injuries": ["not a team"]})
        feed = InjuryFeed(_settings(), client=client, sleep=Mock())
        assert feed.fetch() is None


class TestWeatherFeed:
    def test_fetch_params(self):
        client = Mock(spec=httpx.Client)
        client.request.return_value = httpx.Response(200, json=WEATHER_PAYLOAD)
        feed = WeatherFeed(_settings(), client=client, sleep=Mock())
        venue = venues()["BUF"]

        reading = feed.fetch(venue, date(2024, 11, 24))

        params = client.request.call_args.kwargs["params"]
        assert params["start_date"] == "2024-11-24"
        assert params["temperature_unit"] == "fahrenheit"
        assert params["wind_speed_unit"] == "mph"
        assert params["latitude"] == venue.lat
        assert reading.temp_max_f == 35.5
        assert reading.wind_speed_mph == 18.0
        assert reading.precipitation_in == pytest.approx(0.5)

    def test_unreadable_units_return_none(self):
        client = Mock(spec=httpx.Client)
        payload = dict(WEATHER_PAYLOAD, daily_units={"wind_speed_10m_max": "furlongs"})
        client.request.return_value = httpx.Response(200, json=payload)
        feed = WeatherFeed(_settings(), client=client, sleep=Mock())
        assert feed.fetch(venues()["BUF"], date(2024, 11, 24)) is None

    def test_feeds_environment_stage(self):
        """A live-shaped forecast flows through the cascade's environment stage."""
        client = Mock(spec=httpx.Client)
        client.request.return_value = httpx.Response(200, json=WEATHER_PAYLOAD)
        feed = WeatherFeed(_settings(), client=client, sleep=Mock())
        base = BasePrediction(
            game_id="2024_12_KC_BUF",
            gameday=date(2024, 11, 24),
            home_team="BUF",
            away_team="KC",
            spread=2.0,
            total=47.5,
            home_win_probability=0.559,
        )

        (record,) = AdjustmentCascade().run([base], None, EnvironmentStage(venues(), feed.fetch))

        assert record.after_environment.skipped is False
        assert record.final.spread == pytest.approx(0.5)

    def test_transport_error(self):
        client = Mock(spec=httpx.Client)
        client.request.side_effect = httpx.ConnectError("refused")
        feed = WeatherFeed(_settings(), client=client, sleep=Mock())
        assert feed.fetch(venues()["BUF"], date(2024, 11, 24)) is None


class TestVenues:
    def test_every_team_has_a_venue(self):
        table = venues()
        assert len(table) == 32
        assert table["DET"].enclosed
        assert not table["DAL"].enclosed


class TestCsvLoaders:
    def test_games_skip_unplayed(self, tmp_path):
        path = tmp_path / "games.csv"
        path.write_text(
            "game_id,season,week,gameday,home_team,away_team,home_score,away_score\n"
            "2024_01_BAL_KC,2024,1,2024-09-05,KC,BAL,27,20\n"
            "2024_18_KC_DEN,2024,18,2025-01-05,DEN,KC,,\n",
            encoding="utf-8",
        )
        games = load_games_csv(path)
        assert len(games) == 1
        assert games[0].margin == 7
        assert games[0].gameday == date(2024, 9, 5)

        fixtures = load_fixtures_csv(path)
        assert len(fixtures) == 2
        assert not fixtures[1].completed
