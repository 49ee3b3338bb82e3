"""Tests for artifact persistence and the feed cache."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pandas as pd
import pytest

from nfl_forecast.artifacts import (
    append_jsonl,
    backup_path_for,
    read_jsonl,
    safe_write_csv,
)
from nfl_forecast.cache import FileCache, request_key


class TestSafeWriteCsv:
    """Replace-or-backup writes."""

    def test_creates_parents(self, tmp_path):
        path = tmp_path / "out" / "archive" / "p.csv"
        safe_write_csv(pd.DataFrame({"a": [1, 2]}), path)
        assert pd.read_csv(path)["a"].tolist() == [1, 2]
        assert not backup_path_for(path).exists()

    def test_replaces_previous(self, tmp_path):
        path = tmp_path / "p.csv"
        safe_write_csv(pd.DataFrame({"a": [1]}), path)
        safe_write_csv(pd.DataFrame({"a": [2]}), path, keep_backup=True)
        assert pd.read_csv(path)["a"].tolist() == [2]
        assert pd.read_csv(backup_path_for(path))["a"].tolist() == [1]

    def test_failed_write_restores(self, tmp_path):
        """A failing write leaves the previous artifact in place."""
        path = tmp_path / "p.csv"
        safe_write_csv(pd.DataFrame({"a": [1]}), path)

        with patch("nfl_forecast.artifacts.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                safe_write_csv(pd.DataFrame({"a": [99]}), path)

        assert pd.read_csv(path)["a"].tolist() == [1]
        assert not path.with_name("p.csv.tmp").exists()


class TestJsonl:
    def test_append_and_read(self, tmp_path):
        path = tmp_path / "logs" / "runs.jsonl"
        assert append_jsonl(path, [{"n": 1}, {"n": 2}]) == 2
        append_jsonl(path, [{"n": 3}])
        assert [r["n"] for r in read_jsonl(path)] == [1, 2, 3]

    def test_malformed_line_skipped(self, tmp_path):
        path = tmp_path / "runs.jsonl"
        path.write_text('{"n": 1}\nnot json\n{"n": 2}\n', encoding="utf-8")
        assert [r["n"] for r in read_jsonl(path)] == [1, 2]

    def test_missing_file(self, tmp_path):
        assert read_jsonl(tmp_path / "nope.jsonl") == []


class TestFileCache:
    def test_round_trip(self, tmp_path):
        cache = FileCache(str(tmp_path), ttl_seconds=60)
        assert cache.get("k") is None
        cache.set("k", {"injuries": []})
        assert cache.get("k") == {"injuries": []}

    def test_expired(self, tmp_path):
        cache = FileCache(str(tmp_path), ttl_seconds=-1)
        cache.set("k", [1])
        assert cache.get("k") is None

    def test_corrupt_is_miss(self, tmp_path):
        cache = FileCache(str(tmp_path), ttl_seconds=60)
        cache.set("k", [1])
        next((tmp_path / "default").glob("*.json")).write_text("{", encoding="utf-8")
        assert cache.get("k") is None

    def test_namespaces_separate(self, tmp_path):
        injuries = FileCache(str(tmp_path), ttl_seconds=60, namespace="injuries")
        weather = FileCache(str(tmp_path), ttl_seconds=60, namespace="weather")
        injuries.set("k", "a")
        assert weather.get("k") is None
        assert injuries.clear() == 1
        assert injuries.get("k") is None

    def test_concurrent_writes_same_key(self, tmp_path):
        cache = FileCache(str(tmp_path), ttl_seconds=60)
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda n: cache.set("k", {"n": n}), range(32)))
        assert cache.get("k")["n"] in range(32)
        assert list((tmp_path / "default").glob("*.tmp")) == []

    def test_request_key_order_independent(self):
        a = request_key("https://x.test/f", {"lat": 1, "lon": 2})
        b = request_key("https://x.test/f", {"lon": 2, "lat": 1})
        assert a == b == "https://x.test/f?lat=1&lon=2"
