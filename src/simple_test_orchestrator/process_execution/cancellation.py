"""Cooperative cancellation shared between the caller and running executions."""

from __future__ import annotations

import threading


class CancellationToken:
    """Thread-safe abort flag observed by runners between wait iterations."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the flag."""
        return self._event.wait(timeout)
