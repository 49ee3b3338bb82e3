"""NFL reference tables: teams, divisions, venues, position impact."""

from __future__ import annotations

from typing import Dict, List, Tuple

# =============================================================================
# Teams and divisions
# =============================================================================

NFL_DIVISIONS: Dict[str, List[str]] = {
    "AFC East": ["BUF", "MIA", "NE", "NYJ"],
    "AFC North": ["BAL", "CIN", "CLE", "PIT"],
    "AFC South": ["HOU", "IND", "JAX", "TEN"],
    "AFC West": ["DEN", "KC", "LV", "LAC"],
    "NFC East": ["DAL", "NYG", "PHI", "WAS"],
    "NFC North": ["CHI", "DET", "GB", "MIN"],
    "NFC South": ["ATL", "CAR", "NO", "TB"],
    "NFC West": ["ARI", "LA", "SF", "SEA"],
}

TEAM_TO_DIVISION: Dict[str, str] = {
    team: division for division, teams in NFL_DIVISIONS.items() for team in teams
}

ALL_NFL_TEAMS: List[str] = sorted(TEAM_TO_DIVISION)

TEAM_NAME_TO_CODE: Dict[str, str] = {
    "Arizona Cardinals": "ARI",
    "Atlanta Falcons": "ATL",
    "Baltimore Ravens": "BAL",
    "Buffalo Bills": "BUF",
    "Carolina Panthers": "CAR",
    "Chicago Bears": "CHI",
    "Cincinnati Bengals": "CIN",
    "Cleveland Browns": "CLE",
    "Dallas Cowboys": "DAL",
    "Denver Broncos": "DEN",
    "Detroit Lions": "DET",
    "Green Bay Packers": "GB",
    "Houston Texans": "HOU",
    "Indianapolis Colts": "IND",
    "Jacksonville Jaguars": "JAX",
    "Kansas City Chiefs": "KC",
    "Las Vegas Raiders": "LV",
    "Los Angeles Chargers": "LAC",
    "Los Angeles Rams": "LA",
    "Miami Dolphins": "MIA",
    "Minnesota Vikings": "MIN",
    "New England Patriots": "NE",
    "New Orleans Saints": "NO",
    "New York Giants": "NYG",
    "New York Jets": "NYJ",
    "Philadelphia Eagles": "PHI",
    "Pittsburgh Steelers": "PIT",
    "San Francisco 49ers": "SF",
    "Seattle Seahawks": "SEA",
    "Tampa Bay Buccaneers": "TB",
    "Tennessee Titans": "TEN",
    "Washington Commanders": "WAS",
}

# Legacy codes that still show up in older schedule files
TEAM_CODE_ALIASES: Dict[str, str] = {
    "LAR": "LA",
    "OAK": "LV",
    "SD": "LAC",
    "STL": "LA",
    "WSH": "WAS",
    "JAC": "JAX",
}


def is_division_game(home_team: str, away_team: str) -> bool:
    home_div = TEAM_TO_DIVISION.get(home_team)
    return home_div is not None and home_div == TEAM_TO_DIVISION.get(away_team)


# =============================================================================
# Venues (lat, lon, roof)
# =============================================================================

VENUES: Dict[str, Tuple[float, float, str]] = {
    "ARI": (33.5276, -112.2626, "retractable"),
    "ATL": (33.7553, -84.4009, "retractable"),
    "BAL": (39.2780, -76.6227, "open"),
    "BUF": (42.7738, -78.7870, "open"),
    "CAR": (35.2258, -80.8530, "open"),
    "CHI": (41.8623, -87.6167, "open"),
    "CIN": (39.0954, -84.5160, "open"),
    "CLE": (41.5061, -81.6995, "open"),
    "DAL": (32.7473, -97.0945, "retractable"),
    "DEN": (39.7439, -105.0201, "open"),
    "DET": (42.3400, -83.0456, "dome"),
    "GB": (44.5013, -88.0622, "open"),
    "HOU": (29.6847, -95.4107, "retractable"),
    "IND": (39.7601, -86.1639, "retractable"),
    "JAX": (30.3240, -81.6373, "open"),
    "KC": (39.0489, -94.4839, "open"),
    "LV": (36.0909, -115.1836, "dome"),
    "LAC": (33.8634, -118.2631, "open"),
    "LA": (34.0139, -118.2878, "open"),
    "MIA": (25.9580, -80.2389, "open"),
    "MIN": (44.9738, -93.2577, "dome"),
    "NE": (42.0909, -71.2643, "open"),
    "NO": (29.9511, -90.0812, "dome"),
    "NYG": (40.8128, -74.0742, "open"),
    "NYJ": (40.8135, -74.0745, "open"),
    "PHI": (39.9008, -75.1675, "open"),
    "PIT": (40.4468, -80.0158, "open"),
    "SF": (37.7699, -122.3860, "open"),
    "SEA": (47.5952, -122.3316, "open"),
    "TB": (27.9759, -82.5033, "open"),
    "TEN": (36.1665, -86.7713, "open"),
    "WAS": (38.9072, -76.8645, "open"),
}

# =============================================================================
# Availability impact
# =============================================================================

# Points lost per unavailable participant: (OUT, DOUBTFUL, QUESTIONABLE)
POSITION_IMPACT: Dict[str, Tuple[float, float, float]] = {
    "QB": (6.5, 4.5, 2.0),
    "RB": (1.5, 1.0, 0.5),
    "WR": (1.2, 0.8, 0.3),
    "TE": (1.0, 0.7, 0.3),
    "T": (2.0, 1.4, 0.7),
    "G": (1.5, 1.0, 0.5),
    "C": (1.8, 1.2, 0.6),
    "DE": (2.0, 1.4, 0.7),
    "DT": (1.5, 1.0, 0.5),
    "LB": (1.0, 0.7, 0.3),
    "CB": (1.2, 0.8, 0.4),
    "S": (0.8, 0.5, 0.2),
    "K": (0.5, 0.3, 0.1),
    "P": (0.3, 0.2, 0.1),
}

RECEIVING_POSITIONS = frozenset({"WR", "TE"})
RUSHING_POSITIONS = frozenset({"RB"})
LINE_POSITIONS = frozenset({"T", "G", "C"})

# Line multiplier blend: pass protection matters more than run blocking
LINE_PASS_WEIGHT = 0.6
LINE_RUSH_WEIGHT = 0.4
