"""Shared synthetic league for feature, model and pipeline tests."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from nfl_forecast.models import Fixture, GameResult

LEAGUE_START = date(2023, 9, 10)

STRENGTH = {"KC": 10, "BUF": 6, "BAL": 3, "DEN": 0}

PAIRINGS = [
    (("KC", "BUF"), ("BAL", "DEN")),
    (("KC", "BAL"), ("BUF", "DEN")),
    (("KC", "DEN"), ("BUF", "BAL")),
]


def league_games(weeks: int = 20) -> list:
    """Four teams playing weekly, stronger teams usually winning."""
    games = []
    for w in range(weeks):
        for g, (a, b) in enumerate(PAIRINGS[w % len(PAIRINGS)]):
            home, away = (a, b) if w % 2 == 0 else (b, a)
            noise = ((w * 7 + g * 5) % 11) - 5
            away_score = 17 + (w * 3 + g) % 7
            home_score = max(0, away_score + STRENGTH[home] - STRENGTH[away] + 2 + noise)
            games.append(
                GameResult(
                    game_id=f"2023_{w + 1:02d}_{away}_{home}",
                    season=2023,
                    week=w + 1,
                    gameday=LEAGUE_START + timedelta(days=7 * w),
                    home_team=home,
                    away_team=away,
                    home_score=home_score,
                    away_score=away_score,
                )
            )
    return games


def upcoming(weeks: int = 20) -> list:
    day = LEAGUE_START + timedelta(days=7 * weeks)
    return [
        Fixture(game_id="next_1", season=2023, week=weeks + 1, gameday=day, home_team="BUF", away_team="KC"),
        Fixture(game_id="next_2", season=2023, week=weeks + 1, gameday=day, home_team="DEN", away_team="BAL"),
        Fixture(game_id="next_3", season=2023, week=weeks + 1, gameday=day, home_team="SEA", away_team="LA"),
    ]


@pytest.fixture
def games():
    return league_games()


@pytest.fixture
def fixtures():
    return upcoming()
