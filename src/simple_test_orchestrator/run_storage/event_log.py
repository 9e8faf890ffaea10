"""Append-only structured event log of a run folder."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any


class EventLevel(str, Enum):
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class EventLog:
    """Write one JSON object per line to ``events.jsonl``."""

    def __init__(self, path: Path, clock: Callable[[], datetime] = _utc_now) -> None:
        self._path = path
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def append(
        self,
        level: EventLevel,
        code: str,
        message: str,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        event: dict[str, Any] = {
            "timestamp": self._clock().isoformat(),
            "level": level.value,
            "code": code,
            "message": message,
        }
        if data:
            event["data"] = dict(data)
        line = json.dumps(event, ensure_ascii=False, default=str)
        with self._lock, self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def info(self, code: str, message: str, data: Mapping[str, Any] | None = None) -> None:
        self.append(EventLevel.INFO, code, message, data)

    def warning(self, code: str, message: str, data: Mapping[str, Any] | None = None) -> None:
        self.append(EventLevel.WARNING, code, message, data)

    def error(self, code: str, message: str, data: Mapping[str, Any] | None = None) -> None:
        self.append(EventLevel.ERROR, code, message, data)


def read_events(path: Path) -> list[dict[str, Any]]:
    """Return the events of a log file; a missing file has no events."""
    if not path.exists():
        return []
    events = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if line.strip():
            events.append(json.loads(line))
    return events
