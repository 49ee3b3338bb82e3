"""Name resolution between feeds.

Feeds disagree on how they spell teams and players ("Los Angeles Rams" vs
"LA", "Patrick Mahomes II" vs "P.Mahomes"). Every lookup goes through
``NameResolver.resolve`` so the fallback policy lives in one place:

1. exact match on a known name or identifier
2. explicit alias table
3. normalized match (case, punctuation, generational suffixes)
4. a single unambiguous containment match

Anything else resolves to ``None`` and callers decide what an unknown name
costs them.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Mapping, Optional

from .constants import ALL_NFL_TEAMS, TEAM_CODE_ALIASES, TEAM_NAME_TO_CODE

log = logging.getLogger(__name__)

_SUFFIXES = re.compile(r"\b(jr|sr|ii|iii|iv|v)\b")
_NON_ALNUM = re.compile(r"[^a-z0-9 ]+")


def normalize_name(name: str) -> str:
    s = name.lower().replace(".", " ")
    s = _NON_ALNUM.sub(" ", s)
    s = _SUFFIXES.sub(" ", s)
    return " ".join(s.split())


class NameResolver:
    def __init__(
        self,
        names: Mapping[str, str],
        aliases: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Args:
            names: display name -> identifier
            aliases: alternative spelling -> identifier
        """
        self._exact: Dict[str, str] = dict(names)
        for ident in names.values():
            self._exact.setdefault(ident, ident)
        self._aliases: Dict[str, str] = dict(aliases or {})
        self._normalized: Dict[str, str] = {}
        for label, ident in self._exact.items():
            self._normalized.setdefault(normalize_name(label), ident)

    def resolve(self, name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        if name in self._exact:
            return self._exact[name]
        if name in self._aliases:
            return self._aliases[name]

        key = normalize_name(name)
        if not key:
            return None
        if key in self._normalized:
            return self._normalized[key]

        hits = {
            ident
            for label, ident in self._normalized.items()
            if len(label) > 2 and (key in label or label in key)
        }
        if len(hits) == 1:
            return hits.pop()
        if hits:
            log.debug("Ambiguous name %r matched %s", name, sorted(hits))
        else:
            log.debug("Unresolved name %r", name)
        return None


def team_resolver() -> NameResolver:
    names = dict(TEAM_NAME_TO_CODE)
    for code in ALL_NFL_TEAMS:
        names.setdefault(code, code)
    return NameResolver(names, aliases=TEAM_CODE_ALIASES)
