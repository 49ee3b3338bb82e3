"""Tests for cross-feed name resolution."""

from __future__ import annotations

from nfl_forecast.constants import is_division_game
from nfl_forecast.identity import NameResolver, normalize_name, team_resolver


class TestNormalizeName:
    def test_suffix_and_punctuation(self):
        assert normalize_name("Patrick Mahomes II") == "patrick mahomes"
        assert normalize_name("A.J. Brown") == "a j brown"
        assert normalize_name("  Odell   Beckham Jr. ") == "odell beckham"


class TestNameResolver:
    PASSERS = {"Josh Allen": "00-0034857", "Mitchell Trubisky": "00-0033869"}

    def test_exact_and_identifier(self):
        r = NameResolver(self.PASSERS)
        assert r.resolve("Josh Allen") == "00-0034857"
        assert r.resolve("00-0033869") == "00-0033869"

    def test_alias(self):
        r = NameResolver(self.PASSERS, aliases={"Mitch Trubisky": "00-0033869"})
        assert r.resolve("Mitch Trubisky") == "00-0033869"

    def test_normalized(self):
        assert NameResolver(self.PASSERS).resolve("JOSH ALLEN") == "00-0034857"

    def test_unique_containment(self):
        assert NameResolver(self.PASSERS).resolve("Trubisky") == "00-0033869"

    def test_ambiguous_or_unknown(self):
        r = NameResolver({"Josh Allen": "a", "Josh Allen Sr": "a", "Kyle Allen": "b"})
        assert r.resolve("Allen") is None
        assert r.resolve("Tom Brady") is None
        assert r.resolve("") is None
        assert r.resolve(None) is None


class TestTeams:
    def test_team_names(self):
        r = team_resolver()
        assert r.resolve("Kansas City Chiefs") == "KC"
        assert r.resolve("KC") == "KC"
        assert r.resolve("WSH") == "WAS"
        assert r.resolve("los angeles rams") == "LA"

    def test_division(self):
        assert is_division_game("KC", "LV")
        assert not is_division_game("KC", "BUF")
        assert not is_division_game("KC", "XXX")
