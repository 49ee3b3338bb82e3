"""Elo-style team strength ratings.

Ratings are carried in an explicit ``RatingState`` that the engine reads and
updates one completed match at a time. Every update emits an immutable
``RatingSnapshot`` per team holding the rating before and after the match,
so features for a game are always taken from the "before" side.

Matches must arrive in non-decreasing date order. The engine refuses
anything else instead of silently reordering, because a rating computed out
of order leaks future results into earlier games.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import pandas as pd

from .exceptions import OrderingViolation
from .models import GameResult

log = logging.getLogger(__name__)

DEFAULT_K = 20.0
DEFAULT_INITIAL = 1500.0
ELO_SCALE = 400.0


def expected_score(rating: float, opponent_rating: float) -> float:
    """Probability-like expected score for `rating` against `opponent_rating`.

    Example:
        >>> expected_score(1500.0, 1500.0)
        0.5
    """
    return 1.0 / (1.0 + 10.0 ** ((opponent_rating - rating) / ELO_SCALE))


def actual_score(points_for: int, points_against: int) -> float:
    """1 for a win, 0.5 for a draw, 0 for a loss."""
    if points_for > points_against:
        return 1.0
    if points_for < points_against:
        return 0.0
    return 0.5


def sort_games(games: Iterable[GameResult]) -> List[GameResult]:
    """Chronological order (date, then game_id) for loaders that hand back unsorted rows."""
    return sorted(games, key=lambda g: (g.gameday, g.game_id))


# =============================================================================
# State and snapshots
# =============================================================================


@dataclass(frozen=True)
class RatingSnapshot:
    """One team's rating around one match."""

    team: str
    game_id: str
    gameday: date
    rating_before: float
    rating_after: float


@dataclass
class RatingState:
    """Mutable rating table threaded through `RatingEngine.update`.

    Attributes:
        initial: rating assigned to a team the first time it appears
        ratings: team -> current rating
        as_of: date of the latest processed match
        processed: ids of every match already applied
    """

    initial: float = DEFAULT_INITIAL
    ratings: Dict[str, float] = field(default_factory=dict)
    as_of: Optional[date] = None
    processed: Set[str] = field(default_factory=set)

    def rating(self, team: str) -> float:
        return self.ratings.get(team, self.initial)

    def copy(self) -> "RatingState":
        return RatingState(
            initial=self.initial,
            ratings=dict(self.ratings),
            as_of=self.as_of,
            processed=set(self.processed),
        )


@dataclass
class RatingHistory:
    """Snapshots from a full pass over the match history plus the final state."""

    snapshots: List[RatingSnapshot]
    state: RatingState

    def __post_init__(self) -> None:
        self._by_key: Dict[Tuple[str, str], RatingSnapshot] = {
            (s.game_id, s.team): s for s in self.snapshots
        }

    def pre_game(self, game_id: str, team: str) -> float:
        """Rating `team` carried into `game_id`. The only rating a game's features may use."""
        snap = self._by_key.get((game_id, team))
        if snap is None:
            raise KeyError(f"No rating snapshot for {team} in {game_id}")
        return snap.rating_before

    def rating_as_of(self, team: str, as_of: date) -> float:
        """Latest post-match rating from matches played strictly before `as_of`."""
        rating = self.state.initial
        for snap in self.snapshots:
            if snap.team != team:
                continue
            if snap.gameday >= as_of:
                break
            rating = snap.rating_after
        return rating

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "team": s.team,
                    "game_id": s.game_id,
                    "gameday": s.gameday,
                    "rating_before": s.rating_before,
                    "rating_after": s.rating_after,
                }
                for s in self.snapshots
            ],
            columns=["team", "game_id", "gameday", "rating_before", "rating_after"],
        )


# =============================================================================
# Engine
# =============================================================================


class RatingEngine:
    def __init__(self, k: float = DEFAULT_K, initial: float = DEFAULT_INITIAL) -> None:
        self.k = k
        self.initial = initial

    def new_state(self) -> RatingState:
        return RatingState(initial=self.initial)

    def update(
        self, state: RatingState, game: GameResult
    ) -> Tuple[RatingSnapshot, RatingSnapshot]:
        """Apply one completed match to `state`.

        Args:
            state: rating table, updated in place
            game: completed match; must not predate `state.as_of`

        Returns:
            (home snapshot, away snapshot)

        Raises:
            OrderingViolation: the match is earlier than one already applied,
                or has already been applied.
        """
        if game.game_id in state.processed:
            raise OrderingViolation(f"Match {game.game_id} was already rated")
        if state.as_of is not None and game.gameday < state.as_of:
            raise OrderingViolation(
                f"Match {game.game_id} on {game.gameday} arrived after matches "
                f"dated {state.as_of}"
            )

        home_before = state.rating(game.home_team)
        away_before = state.rating(game.away_team)

        exp_home = expected_score(home_before, away_before)
        act_home = actual_score(game.home_score, game.away_score)
        delta = self.k * (act_home - exp_home)

        home_after = home_before + delta
        away_after = away_before - delta

        state.ratings[game.home_team] = home_after
        state.ratings[game.away_team] = away_after
        state.as_of = game.gameday
        state.processed.add(game.game_id)

        return (
            RatingSnapshot(game.home_team, game.game_id, game.gameday, home_before, home_after),
            RatingSnapshot(game.away_team, game.game_id, game.gameday, away_before, away_after),
        )

    def run(
        self, games: Sequence[GameResult], state: Optional[RatingState] = None
    ) -> RatingHistory:
        """Rate `games` in the order given, starting from `state` (or a fresh one)."""
        state = state if state is not None else self.new_state()
        snapshots: List[RatingSnapshot] = []
        for game in games:
            snapshots.extend(self.update(state, game))
        log.info("Rated %s matches for %s teams", len(games), len(state.ratings))
        return RatingHistory(snapshots=snapshots, state=state)
