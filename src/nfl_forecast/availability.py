"""Participant availability impact.

Converts a snapshot of injury reports into a points adjustment per side.

The critical position (the starting passer) is priced individually:

1. the injured passer must have starter-level usage in the trailing weeks,
   otherwise the report is noted with no penalty
2. the replacement is the best-ranked remaining passer on the depth chart,
   ties broken by recent then career attempts
3. the penalty is the EPA gap between the two scaled to points, clamped to
   a band that depends on whether the replacement is competent

Every other position takes a fixed per-severity value from the position
table, scaled by the opposing defense's quality against that position group.

Net adjustment for a fixture is away impact minus home impact: a home-side
loss lowers the home-perspective spread.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .config import Settings
from .constants import (
    LINE_PASS_WEIGHT,
    LINE_POSITIONS,
    LINE_RUSH_WEIGHT,
    POSITION_IMPACT,
    RECEIVING_POSITIONS,
    RUSHING_POSITIONS,
)
from .efficiency import DefenseRating, PasserHistory, PasserTable
from .identity import NameResolver
from .models import Fixture, InjuryReport, Severity

log = logging.getLogger(__name__)

# EPA per play gap -> points: roughly 65 dropbacks per game
EPA_TO_POINTS = 65.0

# Assumed EPA per play when a passer has no qualifying history
LEAGUE_AVERAGE_EPA = 0.05

# An unproven replacement is assumed this much worse than league average
UNPROVEN_REPLACEMENT_OFFSET = 0.05

# Replacement EPA above this counts as a competent backup
COMPETENT_REPLACEMENT_EPA = 0.0

COMPETENT_BAND: Tuple[float, float] = (1.0, 5.0)
WEAK_BAND: Tuple[float, float] = (2.0, 7.0)

# Flat penalties when the passer table cannot answer
UNMATCHED_PASSER_PENALTY = 4.0
NO_REPLACEMENT_PENALTY = 5.0

_SEVERITY_INDEX = {Severity.OUT: 0, Severity.DOUBTFUL: 1, Severity.QUESTIONABLE: 2}

# Severities that take a passer off the field for this match
_CRITICAL_UNAVAILABLE = (Severity.OUT, Severity.DOUBTFUL, Severity.LONG_TERM_OUT)


@dataclass(frozen=True)
class ParticipantImpact:
    """Points one reported participant costs their side, with the reason."""

    team: str
    player: str
    position: str
    severity: Severity
    points: float
    note: str


@dataclass(frozen=True)
class TeamImpact:
    team: str
    total: float
    contributions: Tuple[ParticipantImpact, ...] = ()

    @property
    def notes(self) -> List[str]:
        return [c.note for c in self.contributions]


@dataclass(frozen=True)
class AvailabilityAdjustment:
    """Availability effect on one fixture from the home perspective.

    Attributes:
        net: away impact minus home impact, added to the spread
        no_data: the report feed was missing or empty; net is 0 and the
            stage is marked skipped
    """

    home: TeamImpact
    away: TeamImpact
    no_data: bool = False

    @property
    def net(self) -> float:
        return self.away.total - self.home.total

    @property
    def notes(self) -> List[str]:
        return [f"{self.home.team}: {n}" for n in self.home.notes] + [
            f"{self.away.team}: {n}" for n in self.away.notes
        ]

    @classmethod
    def missing(cls, fixture: Fixture) -> "AvailabilityAdjustment":
        return cls(
            home=TeamImpact(fixture.home_team, 0.0),
            away=TeamImpact(fixture.away_team, 0.0),
            no_data=True,
        )


def dedupe_reports(reports: Iterable[InjuryReport]) -> List[InjuryReport]:
    """Collapse repeated (team, player, position) reports, keeping the first."""
    seen = set()
    out: List[InjuryReport] = []
    for r in reports:
        key = (r.team, r.player, r.position)
        if key in seen:
            continue
        seen.add(key)
        out.append(r)
    return out


def _clamp(value: float, band: Tuple[float, float]) -> float:
    return min(max(value, band[0]), band[1])


class AvailabilityImpactResolver:
    def __init__(
        self,
        critical_position: str = "QB",
        starter_play_threshold: int = 50,
        recent_weeks: int = 3,
        position_impact: Optional[Mapping[str, Tuple[float, float, float]]] = None,
    ) -> None:
        self.critical_position = critical_position
        self.starter_play_threshold = starter_play_threshold
        self.recent_weeks = recent_weeks
        self.position_impact = dict(POSITION_IMPACT if position_impact is None else position_impact)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AvailabilityImpactResolver":
        return cls(
            critical_position=settings.critical_position,
            starter_play_threshold=settings.starter_play_threshold,
            recent_weeks=settings.recent_weeks,
        )

    # -------------------------------------------------------------------------
    # Critical position
    # -------------------------------------------------------------------------

    def critical_impact(
        self, team: str, reports: Sequence[InjuryReport], passers: Sequence[PasserHistory]
    ) -> List[ParticipantImpact]:
        """Price every unavailable critical-position participant on one side."""
        pos = self.critical_position
        out: List[ParticipantImpact] = []

        resolver = NameResolver({p.player_name: p.player_id for p in passers})
        by_id: Dict[str, PasserHistory] = {p.player_id: p for p in passers}

        unavailable: List[Tuple[InjuryReport, Optional[PasserHistory]]] = []
        for r in reports:
            if r.severity not in _CRITICAL_UNAVAILABLE:
                out.append(
                    ParticipantImpact(
                        team, r.player, pos, r.severity, 0.0,
                        f"{r.player} ({pos} - {r.severity.value}, expected to play)",
                    )
                )
                continue
            pid = resolver.resolve(r.player)
            unavailable.append((r, by_id.get(pid) if pid else None))

        unavailable_ids = {p.player_id for _, p in unavailable if p is not None}

        for report, injured in unavailable:
            status = report.severity.value
            if injured is None:
                log.warning("Could not match %s %s for %s", pos, report.player, team)
                out.append(
                    ParticipantImpact(
                        team, report.player, pos, report.severity, UNMATCHED_PASSER_PENALTY,
                        f"{report.player} ({pos} - {status}, unmatched)",
                    )
                )
                continue

            if injured.recent_attempts < self.starter_play_threshold:
                log.info(
                    "Skipping %s for %s: %s plays in last %s weeks",
                    injured.player_name, team, injured.recent_attempts, self.recent_weeks,
                )
                out.append(
                    ParticipantImpact(
                        team, injured.player_name, pos, report.severity, 0.0,
                        f"{injured.player_name} ({pos} - {status}, "
                        f"{injured.recent_attempts} plays in last {self.recent_weeks} weeks, no penalty)",
                    )
                )
                continue

            remaining = [p for p in passers if p.player_id not in unavailable_ids]
            if not remaining:
                out.append(
                    ParticipantImpact(
                        team, injured.player_name, pos, report.severity, NO_REPLACEMENT_PENALTY,
                        f"{injured.player_name} ({pos} - {status}, no replacement found)",
                    )
                )
                continue

            replacement = min(
                remaining,
                key=lambda p: (p.depth_rank, -p.recent_attempts, -p.attempts, p.player_id),
            )
            injured_epa = injured.epa_per_play if injured.has_history else LEAGUE_AVERAGE_EPA
            replacement_epa = (
                replacement.epa_per_play
                if replacement.has_history
                else LEAGUE_AVERAGE_EPA - UNPROVEN_REPLACEMENT_OFFSET
            )
            raw = (injured_epa - replacement_epa) * EPA_TO_POINTS
            band = COMPETENT_BAND if replacement_epa > COMPETENT_REPLACEMENT_EPA else WEAK_BAND
            points = _clamp(raw, band)
            log.info(
                "%s %s out for %s: %s starting, %.2f point penalty",
                pos, injured.player_name, team, replacement.player_name, points,
            )
            out.append(
                ParticipantImpact(
                    team, injured.player_name, pos, report.severity, points,
                    f"{injured.player_name} ({pos} - {status}, {replacement.player_name} starting)",
                )
            )
        return out

    # -------------------------------------------------------------------------
    # Other positions
    # -------------------------------------------------------------------------

    def position_multiplier(self, position: str, opponent: Optional[DefenseRating]) -> float:
        if opponent is None:
            return 1.0
        if position in RECEIVING_POSITIONS:
            return opponent.pass_multiplier
        if position in RUSHING_POSITIONS:
            return opponent.rush_multiplier
        if position in LINE_POSITIONS:
            return (
                LINE_PASS_WEIGHT * opponent.pass_multiplier
                + LINE_RUSH_WEIGHT * opponent.rush_multiplier
            )
        return 1.0

    def participant_impact(
        self, team: str, report: InjuryReport, opponent: Optional[DefenseRating]
    ) -> Optional[ParticipantImpact]:
        """Table-driven impact for a non-critical participant, None for an unlisted position.

        Long-term absences are already reflected in the rolling stats and cost nothing.
        """
        if report.severity == Severity.LONG_TERM_OUT:
            return ParticipantImpact(
                team, report.player, report.position, report.severity, 0.0,
                f"{report.player} ({report.position} - long-term, already in rolling stats)",
            )
        values = self.position_impact.get(report.position)
        if values is None:
            log.debug("No impact entry for position %s (%s)", report.position, report.player)
            return None
        base = values[_SEVERITY_INDEX[report.severity]]
        mult = self.position_multiplier(report.position, opponent)
        points = base * mult
        note = f"{report.player} ({report.position} - {report.severity.value})"
        if opponent is not None and mult != 1.0:
            note += f" x{mult:.2f} vs {opponent.team}"
        return ParticipantImpact(
            team, report.player, report.position, report.severity, points, note
        )

    # -------------------------------------------------------------------------
    # Team and fixture
    # -------------------------------------------------------------------------

    def team_impact(
        self,
        team: str,
        reports: Sequence[InjuryReport],
        opponent: Optional[DefenseRating] = None,
        passers: Optional[Sequence[PasserHistory]] = None,
    ) -> TeamImpact:
        team_reports = dedupe_reports(r for r in reports if r.team == team)
        critical = [r for r in team_reports if r.position == self.critical_position]
        others = [r for r in team_reports if r.position != self.critical_position]

        contributions: List[ParticipantImpact] = []
        if critical and passers is None:
            contributions.extend(
                ParticipantImpact(
                    team, r.player, r.position, r.severity, 0.0,
                    f"{r.player} ({r.position} - {r.severity.value}, no passer data)",
                )
                for r in critical
            )
        elif critical:
            contributions.extend(self.critical_impact(team, critical, passers))
        for r in others:
            impact = self.participant_impact(team, r, opponent)
            if impact is not None:
                contributions.append(impact)

        total = sum(c.points for c in contributions)
        return TeamImpact(team=team, total=total, contributions=tuple(contributions))

    def resolve(
        self,
        fixture: Fixture,
        reports: Optional[Sequence[InjuryReport]],
        defenses: Optional[Mapping[str, DefenseRating]] = None,
        passers: Optional[PasserTable] = None,
    ) -> AvailabilityAdjustment:
        """Availability adjustment for one fixture.

        A missing or empty report snapshot yields a zero adjustment flagged
        ``no_data`` rather than an error.
        """
        if not reports:
            return AvailabilityAdjustment.missing(fixture)
        defenses = defenses or {}
        home = self.team_impact(
            fixture.home_team,
            reports,
            opponent=defenses.get(fixture.away_team),
            passers=passers.for_team(fixture.home_team) if passers else None,
        )
        away = self.team_impact(
            fixture.away_team,
            reports,
            opponent=defenses.get(fixture.home_team),
            passers=passers.for_team(fixture.away_team) if passers else None,
        )
        return AvailabilityAdjustment(home=home, away=away)


@dataclass
class AvailabilityStage:
    """Per-fixture availability provider bound to one report snapshot."""

    resolver: AvailabilityImpactResolver
    reports: Optional[List[InjuryReport]]
    defenses: Mapping[str, DefenseRating] = field(default_factory=dict)
    passers: Optional[PasserTable] = None

    def __call__(self, fixture: Fixture) -> AvailabilityAdjustment:
        return self.resolver.resolve(fixture, self.reports, self.defenses, self.passers)
