"""Shared append-only run index (``index.jsonl``)."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from pathlib import Path

from .run_records import IndexEntry

INDEX_FILE_NAME = "index.jsonl"

logger = logging.getLogger(__name__)

_INDEX_LOCKS: dict[Path, threading.Lock] = {}
_INDEX_LOCKS_GUARD = threading.Lock()


def index_path(runs_root: Path) -> Path:
    return runs_root / INDEX_FILE_NAME


def append_index_entry(runs_root: Path, entry: IndexEntry) -> None:
    """Append one entry; writers to the same index are serialized."""
    path = index_path(runs_root)
    line = json.dumps(entry.to_document(), ensure_ascii=False)
    with _lock_for(path), path.open("a", encoding="utf-8") as handle:
        handle.write(line + "\n")


def read_run_index(runs_root: Path | str) -> Iterator[IndexEntry]:
    """Yield index entries in append order, skipping malformed lines."""
    path = index_path(Path(runs_root))
    if not path.exists():
        return
    with path.open("rb") as handle:
        for line_number, raw_line in enumerate(handle, start=1):
            if not raw_line.strip():
                continue
            try:
                document = json.loads(raw_line.decode("utf-8"))
                entry = IndexEntry.from_document(document)
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                logger.warning("Skipping malformed index line %d in %s: %s", line_number, path, exc)
                continue
            yield entry


def _lock_for(path: Path) -> threading.Lock:
    key = path.resolve()
    with _INDEX_LOCKS_GUARD:
        return _INDEX_LOCKS.setdefault(key, threading.Lock())
