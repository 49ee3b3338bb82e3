"""Play-level efficiency aggregates.

Three views over the play-by-play table:

- per-game offensive/defensive efficiency, merged into the team-game rows
  that feed the rolling aggregates
- season defensive quality by position group, ranked into multipliers that
  scale availability penalties
- the passer table the availability resolver uses to price a starting
  passer's absence against the replacement's track record
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .models import DepthChartEntry, PlayEvent

log = logging.getLogger(__name__)

# A play gaining more than this much expected points counts as explosive.
EXPLOSIVE_EPA = 0.5

# Passers need this many attempts before their EPA is trusted.
MIN_PASSER_ATTEMPTS = 50

# Depth rank for passers missing from the depth chart.
UNRANKED_DEPTH = 99

PLAY_COLUMNS = [
    "game_id",
    "season",
    "week",
    "posteam",
    "defteam",
    "epa",
    "success",
    "play_type",
    "passer_id",
    "passer_name",
]


def plays_frame(plays: Iterable[PlayEvent]) -> pd.DataFrame:
    return pd.DataFrame([p.model_dump() for p in plays], columns=PLAY_COLUMNS)


def _valid_plays(plays: pd.DataFrame) -> pd.DataFrame:
    return plays[plays["posteam"].notna() & plays["defteam"].notna() & plays["epa"].notna()]


# =============================================================================
# Per-game efficiency
# =============================================================================


def game_efficiency(plays: pd.DataFrame) -> pd.DataFrame:
    """Per (game_id, team) efficiency, one row per team that had the ball.

    Columns: off_epa, success_rate, explosive_rate, pace, def_epa.
    """
    p = _valid_plays(plays).copy()
    if p.empty:
        return pd.DataFrame(
            columns=["game_id", "team", "off_epa", "success_rate", "explosive_rate", "pace", "def_epa"]
        )
    p["explosive"] = (p["epa"] > EXPLOSIVE_EPA).astype(float)

    offense = (
        p.groupby(["game_id", "posteam"])
        .agg(
            off_epa=("epa", "mean"),
            success_rate=("success", "mean"),
            explosive_rate=("explosive", "mean"),
            pace=("epa", "size"),
        )
        .reset_index()
        .rename(columns={"posteam": "team"})
    )
    defense = (
        p.groupby(["game_id", "defteam"])
        .agg(def_epa=("epa", "mean"))
        .reset_index()
        .rename(columns={"defteam": "team"})
    )
    out = offense.merge(defense, on=["game_id", "team"], how="outer")
    out["pace"] = out["pace"].astype(float)
    return out


# =============================================================================
# Defensive quality multipliers
# =============================================================================


@dataclass(frozen=True)
class DefenseRating:
    """Season defensive quality for one team.

    A multiplier below 1.0 means a stingier than average unit (lower EPA
    allowed), above 1.0 a more generous one.
    """

    team: str
    pass_epa_allowed: float
    rush_epa_allowed: float
    pass_multiplier: float = 1.0
    rush_multiplier: float = 1.0


def rank_multiplier(ranks: pd.Series) -> pd.Series:
    """1 + (rank - midpoint) / n, so the middle of the league maps to 1.0."""
    n = ranks.notna().sum()
    if n == 0:
        return ranks
    midpoint = (n + 1) / 2.0
    return 1.0 + (ranks - midpoint) / n


def defense_ratings(plays: pd.DataFrame, season: Optional[int] = None) -> Dict[str, DefenseRating]:
    """Rank every defense by EPA allowed per pass and per rush.

    Args:
        plays: play table shaped like `plays_frame`
        season: restrict to one season (defaults to the latest in `plays`)
    """
    p = _valid_plays(plays)
    if p.empty:
        return {}
    season = int(p["season"].max()) if season is None else season
    p = p[p["season"] == season]

    def _by_type(kind: str) -> pd.DataFrame:
        g = p[p["play_type"] == kind].groupby("defteam")["epa"].mean().rename(f"{kind}_epa_allowed")
        frame = g.to_frame()
        ranks = frame[f"{kind}_epa_allowed"].rank(method="average")
        frame[f"{kind}_multiplier"] = rank_multiplier(ranks)
        return frame

    table = _by_type("pass").join(_by_type("rush"), how="outer")

    out: Dict[str, DefenseRating] = {}
    for team, row in table.iterrows():
        out[str(team)] = DefenseRating(
            team=str(team),
            pass_epa_allowed=float(row["pass_epa_allowed"]),
            rush_epa_allowed=float(row["rush_epa_allowed"]),
            pass_multiplier=1.0 if pd.isna(row["pass_multiplier"]) else float(row["pass_multiplier"]),
            rush_multiplier=1.0 if pd.isna(row["rush_multiplier"]) else float(row["rush_multiplier"]),
        )
    log.info("Computed defensive ratings for %s teams (season %s)", len(out), season)
    return out


# =============================================================================
# Passer table
# =============================================================================


@dataclass(frozen=True)
class PasserHistory:
    """One rostered passer's track record and current role.

    Attributes:
        epa_per_play: mean EPA over qualifying history, None without enough attempts
        attempts: career attempts in the loaded history
        recent_attempts: plays in the trailing recent-weeks window of the latest season
        depth_rank: depth chart slot, UNRANKED_DEPTH when unlisted
    """

    team: str
    player_id: str
    player_name: str
    epa_per_play: Optional[float]
    attempts: int
    recent_attempts: int
    depth_rank: int = UNRANKED_DEPTH

    @property
    def has_history(self) -> bool:
        return self.epa_per_play is not None


class PasserTable:
    def __init__(self, passers: Sequence[PasserHistory]) -> None:
        self._by_team: Dict[str, List[PasserHistory]] = {}
        for p in passers:
            self._by_team.setdefault(p.team, []).append(p)

    def for_team(self, team: str) -> List[PasserHistory]:
        return list(self._by_team.get(team, []))

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_team.values())

    @classmethod
    def build(
        cls,
        plays: pd.DataFrame,
        depth_chart: Sequence[DepthChartEntry],
        *,
        position: str = "QB",
        recent_weeks: int = 3,
        min_attempts: int = MIN_PASSER_ATTEMPTS,
    ) -> "PasserTable":
        """Join rostered passers with their passing history.

        Everyone listed at `position` on the depth chart is included, plus
        anyone who threw for a team in the latest season without a listing.
        """
        p = _valid_plays(plays)
        passes = p[p["passer_id"].notna() & (p["play_type"] == "pass")]

        career = passes.groupby("passer_id").agg(attempts=("epa", "size"), epa=("epa", "mean"))

        latest = p[p["season"] == p["season"].max()] if not p.empty else p
        recent_floor = (latest["week"].max() - recent_weeks) if not latest.empty else 0
        recent = (
            latest[latest["passer_id"].notna() & (latest["week"] >= recent_floor)]
            .groupby("passer_id")
            .size()
        )

        roster: Dict[tuple, DepthChartEntry] = {}
        for entry in depth_chart:
            if entry.position != position:
                continue
            key = (entry.team, entry.player_id)
            if key not in roster or entry.rank < roster[key].rank:
                roster[key] = entry

        names: Dict[tuple, str] = {k: e.player_name for k, e in roster.items()}
        ranks: Dict[tuple, int] = {k: e.rank for k, e in roster.items()}
        season_passers = latest[latest["passer_id"].notna()][["posteam", "passer_id", "passer_name"]]
        for row in season_passers.drop_duplicates(["posteam", "passer_id"]).itertuples(index=False):
            key = (row.posteam, row.passer_id)
            label = row.passer_name if isinstance(row.passer_name, str) else row.passer_id
            names.setdefault(key, label)

        out: List[PasserHistory] = []
        for (team, pid), name in sorted(names.items()):
            attempts = int(career["attempts"].get(pid, 0))
            epa = float(career["epa"][pid]) if attempts >= min_attempts else None
            out.append(
                PasserHistory(
                    team=team,
                    player_id=pid,
                    player_name=name,
                    epa_per_play=epa,
                    attempts=attempts,
                    recent_attempts=int(recent.get(pid, 0)),
                    depth_rank=ranks.get((team, pid), UNRANKED_DEPTH),
                )
            )
        log.info("Passer table: %s passers across %s teams", len(out), len({p.team for p in out}))
        return cls(out)
