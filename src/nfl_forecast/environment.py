"""Game-day weather: unit normalization and point impact.

Feed payloads are converted to °F / mph / inches by `normalize_reading`
before anything else sees them. Scoring works only on a normalized
`WeatherReading`.

Penalties are step functions per factor and add up:

    wind  > 20 mph: -3.0   > 15: -1.5   > 10: -0.5
    temp  < 20 °F:  -2.0   < 32: -1.0   > 95: -0.5
    precip > 0.5 in: -2.0  > 0.1: -0.5

Enclosed venues are not scored at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Mapping, Optional, Tuple

from .models import Fixture, Venue, WeatherReading

log = logging.getLogger(__name__)

# =============================================================================
# Unit conversion
# =============================================================================

MM_PER_INCH = 25.4
KMH_PER_MPH = 1.609344
MS_PER_MPH = 0.44704
MPH_PER_KNOT = 1.150779


def mm_to_inches(mm: float) -> float:
    return mm / MM_PER_INCH


def inches_to_mm(inches: float) -> float:
    return inches * MM_PER_INCH


def celsius_to_fahrenheit(c: float) -> float:
    return c * 9.0 / 5.0 + 32.0


def fahrenheit_to_celsius(f: float) -> float:
    return (f - 32.0) * 5.0 / 9.0


def kmh_to_mph(kmh: float) -> float:
    return kmh / KMH_PER_MPH


def mph_to_kmh(mph: float) -> float:
    return mph * KMH_PER_MPH


def ms_to_mph(ms: float) -> float:
    return ms / MS_PER_MPH


def knots_to_mph(knots: float) -> float:
    return knots * MPH_PER_KNOT


_TEMPERATURE = {
    "fahrenheit": lambda v: v,
    "°f": lambda v: v,
    "celsius": celsius_to_fahrenheit,
    "°c": celsius_to_fahrenheit,
}
_WIND = {
    "mph": lambda v: v,
    "mp/h": lambda v: v,
    "kn": knots_to_mph,
    "kt": knots_to_mph,
    "km/h": kmh_to_mph,
    "kmh": kmh_to_mph,
    "m/s": ms_to_mph,
    "ms": ms_to_mph,
}
_PRECIPITATION = {"inch": lambda v: v, "inches": lambda v: v, "mm": mm_to_inches}


def _convert(
    value: Optional[float], unit: str, table: Mapping[str, Callable[[float], float]]
) -> Optional[float]:
    if value is None:
        return None
    try:
        fn = table[unit.strip().lower()]
    except KeyError:
        raise ValueError(f"Unsupported unit: {unit!r}") from None
    return float(fn(float(value)))


def normalize_reading(
    temp_max: Optional[float],
    wind_speed: Optional[float],
    precipitation: Optional[float],
    *,
    temperature_unit: str = "fahrenheit",
    wind_speed_unit: str = "mph",
    precipitation_unit: str = "mm",
) -> WeatherReading:
    """Convert raw feed values into a `WeatherReading` in °F / mph / inches.

    Raises:
        ValueError: a unit label is not recognized.
    """
    return WeatherReading(
        temp_max_f=_convert(temp_max, temperature_unit, _TEMPERATURE),
        wind_speed_mph=_convert(wind_speed, wind_speed_unit, _WIND),
        precipitation_in=_convert(precipitation, precipitation_unit, _PRECIPITATION),
    )


# =============================================================================
# Impact
# =============================================================================

WIND_STEPS: Tuple[Tuple[float, float], ...] = ((20.0, -3.0), (15.0, -1.5), (10.0, -0.5))
COLD_STEPS: Tuple[Tuple[float, float], ...] = ((20.0, -2.0), (32.0, -1.0))
HEAT_STEP: Tuple[float, float] = (95.0, -0.5)
PRECIPITATION_STEPS: Tuple[Tuple[float, float], ...] = ((0.5, -2.0), (0.1, -0.5))


def wind_penalty(mph: Optional[float]) -> float:
    if mph is None:
        return 0.0
    for threshold, points in WIND_STEPS:
        if mph > threshold:
            return points
    return 0.0


def temperature_penalty(fahrenheit: Optional[float]) -> float:
    if fahrenheit is None:
        return 0.0
    for threshold, points in COLD_STEPS:
        if fahrenheit < threshold:
            return points
    if fahrenheit > HEAT_STEP[0]:
        return HEAT_STEP[1]
    return 0.0


def precipitation_penalty(inches: Optional[float]) -> float:
    if inches is None:
        return 0.0
    for threshold, points in PRECIPITATION_STEPS:
        if inches > threshold:
            return points
    return 0.0


@dataclass(frozen=True)
class EnvironmentImpact:
    """Weather effect on one fixture.

    Attributes:
        points: signed adjustment added to the post-availability spread
        applicable: False for enclosed venues
        no_data: no reading was available for an open venue
    """

    points: float
    applicable: bool = True
    no_data: bool = False
    reading: Optional[WeatherReading] = None
    notes: Tuple[str, ...] = ()


def environment_impact(
    venue: Optional[Venue], reading: Optional[WeatherReading]
) -> EnvironmentImpact:
    if venue is not None and venue.enclosed:
        return EnvironmentImpact(0.0, applicable=False, notes=("enclosed venue, not applicable",))
    if venue is None or reading is None:
        return EnvironmentImpact(0.0, no_data=True, notes=("no weather data",))

    notes: List[str] = []
    wind = wind_penalty(reading.wind_speed_mph)
    if wind:
        notes.append(f"wind {reading.wind_speed_mph:.0f} mph ({wind:+.1f})")
    temp = temperature_penalty(reading.temp_max_f)
    if temp:
        notes.append(f"temperature {reading.temp_max_f:.0f}F ({temp:+.1f})")
    precip = precipitation_penalty(reading.precipitation_in)
    if precip:
        notes.append(f"precipitation {reading.precipitation_in:.2f} in ({precip:+.1f})")

    return EnvironmentImpact(wind + temp + precip, reading=reading, notes=tuple(notes))


@dataclass
class EnvironmentStage:
    """Per-fixture environment provider.

    `fetch` returns a normalized reading for a venue on a date, or None when
    the feed has nothing. The stage is handed the post-availability spread;
    the step penalties do not depend on it.
    """

    venues: Mapping[str, Venue]
    fetch: Callable[[Venue, date], Optional[WeatherReading]]

    def __call__(self, fixture: Fixture, spread: float) -> EnvironmentImpact:
        venue = self.venues.get(fixture.home_team)
        if venue is None:
            log.warning("No venue for %s, skipping weather", fixture.home_team)
            return environment_impact(None, None)
        if venue.enclosed:
            return environment_impact(venue, None)
        return environment_impact(venue, self.fetch(venue, fixture.gameday))
