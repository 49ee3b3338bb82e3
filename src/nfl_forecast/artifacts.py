"""Persistence helpers for pipeline artifacts.

Outputs are never left half-written:
- CSV artifacts are written to a temp file and swapped in with os.replace
- the previous version is copied to ``<name>.backup`` first and restored if
  the write fails
- run logs are append-only JSONL files
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Iterable, Union

import pandas as pd

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


def backup_path_for(path: Path) -> Path:
    return path.with_name(path.name + ".backup")


def safe_write_csv(df: pd.DataFrame, path: PathLike, *, keep_backup: bool = False) -> Path:
    """Replace `path` with `df` as CSV, keeping the old copy until the write lands.

    Args:
        df: Frame to persist
        path: Destination file
        keep_backup: Leave ``<name>.backup`` in place after a successful write

    Returns:
        The destination path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if df.empty:
        log.warning("Writing empty frame to %s", path)

    backup = backup_path_for(path)
    had_previous = path.exists()
    if had_previous:
        shutil.copy2(path, backup)

    tmp = path.with_name(path.name + ".tmp")
    try:
        df.to_csv(tmp, index=False)
        os.replace(tmp, path)
    except Exception:
        log.error("Failed to write %s; restoring previous version", path)
        if tmp.exists():
            tmp.unlink()
        if had_previous:
            shutil.copy2(backup, path)
        raise

    if had_previous and not keep_backup:
        backup.unlink()
    return path


def append_jsonl(path: PathLike, records: Iterable[dict[str, Any]]) -> int:
    """Append records to a JSONL log. Returns the number of lines written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    n = 0
    with open(path, "a", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(record, default=str) + "\n")
            n += 1
    return n


def read_jsonl(path: PathLike) -> list[dict[str, Any]]:
    path = Path(path)
    if not path.exists():
        return []
    rows = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            if line.strip():
                try:
                    rows.append(json.loads(line))
                except json.JSONDecodeError:
                    log.warning("Skipping malformed line in %s", path)
    return rows
