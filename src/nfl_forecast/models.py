from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Fixture(BaseModel):
    """A scheduled match. Scores are absent until it has been played."""

    model_config = ConfigDict(frozen=True)

    game_id: str
    season: int
    week: int
    gameday: date
    home_team: str
    away_team: str
    home_score: Optional[int] = None
    away_score: Optional[int] = None

    @property
    def completed(self) -> bool:
        return self.home_score is not None and self.away_score is not None


class GameResult(Fixture):
    """A completed match from the historical feed."""

    home_score: int
    away_score: int

    @property
    def margin(self) -> int:
        return self.home_score - self.away_score

    @property
    def total(self) -> int:
        return self.home_score + self.away_score


class PlayEvent(BaseModel):
    game_id: str
    season: int
    week: int
    posteam: str
    defteam: str
    epa: float
    success: Optional[float] = None
    play_type: str = "other"  # "pass" | "rush" | "other"
    passer_id: Optional[str] = None
    passer_name: Optional[str] = None


class Severity(str, Enum):
    OUT = "OUT"
    DOUBTFUL = "DOUBTFUL"
    QUESTIONABLE = "QUESTIONABLE"
    LONG_TERM_OUT = "LONG_TERM_OUT"


_LONG_TERM_TOKENS = ("INJURED RESERVE", "NFI-R", "PUP-R")
_LONG_TERM_CODES = {"IR", "RES", "PUP", "NFI"}


def parse_severity(status: Optional[str]) -> Optional[Severity]:
    """Map a free-text feed status onto a severity tier (None = not a concern)."""
    if not status:
        return None
    s = status.strip().upper()
    if s in _LONG_TERM_CODES or any(tok in s for tok in _LONG_TERM_TOKENS):
        return Severity.LONG_TERM_OUT
    if "OUT" in s:
        return Severity.OUT
    if "DOUBTFUL" in s:
        return Severity.DOUBTFUL
    if "QUESTIONABLE" in s:
        return Severity.QUESTIONABLE
    return None


class InjuryReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    team: str
    player: str
    position: str
    severity: Severity
    note: Optional[str] = None


class DepthChartEntry(BaseModel):
    team: str
    position: str
    player_id: str
    player_name: str
    rank: int


class WeatherReading(BaseModel):
    """Game-day conditions in fixed units: °F, mph, inches."""

    temp_max_f: Optional[float] = None
    wind_speed_mph: Optional[float] = None
    precipitation_in: Optional[float] = None


class Venue(BaseModel):
    team: str
    lat: float
    lon: float
    roof: str  # "open" | "dome" | "retractable"
    roof_closed: bool = False

    @property
    def enclosed(self) -> bool:
        return self.roof == "dome" or (self.roof == "retractable" and self.roof_closed)
