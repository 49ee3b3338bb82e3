"""On-disk cache for feed payloads.

Layout: ``<cache_dir>/<namespace>/<sha256(request)>.json``, one namespace per
feed so injury snapshots and weather forecasts can be expired separately.
Each file stores the payload with the time it was fetched.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

log = logging.getLogger(__name__)


def request_key(url: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Stable text key for a GET request, independent of parameter order."""
    query = "&".join(f"{k}={params[k]}" for k in sorted(params or {}))
    return f"{url}?{query}"


class FileCache:
    def __init__(self, cache_dir: str, ttl_seconds: int, namespace: str = "default") -> None:
        self.root = Path(cache_dir) / namespace
        self.root.mkdir(parents=True, exist_ok=True)
        self.ttl = ttl_seconds
        self.namespace = namespace

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.root / f"{digest}.json"

    def get(self, key: str) -> Optional[Any]:
        """Cached payload for `key`, or None when missing, expired or unreadable."""
        path = self._path(key)
        if not path.exists():
            return None
        try:
            entry: Dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
            fetched_at = float(entry["fetched_at"])
        except (ValueError, KeyError, TypeError, OSError):
            log.debug("Ignoring unreadable cache entry %s", path.name)
            return None
        if time.time() - fetched_at > self.ttl:
            return None
        log.debug("%s cache hit for %s", self.namespace, key)
        return entry["payload"]

    def set(self, key: str, payload: Any) -> None:
        path = self._path(key)
        entry = {"key": key, "fetched_at": time.time(), "payload": payload}
        # One temp file per write so concurrent writers never share it
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=self.root, suffix=".tmp", delete=False
        ) as f:
            f.write(json.dumps(entry, ensure_ascii=False))
            tmp = f.name
        os.replace(tmp, path)

    def clear(self) -> int:
        """Drop every entry in this namespace. Returns the number removed."""
        removed = 0
        for path in self.root.glob("*.json"):
            path.unlink()
            removed += 1
        return removed
