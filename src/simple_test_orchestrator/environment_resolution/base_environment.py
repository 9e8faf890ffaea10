"""Baseline environment providers."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Protocol


class BaseEnvironmentProvider(Protocol):  # pylint: disable=too-few-public-methods
    """Supplies the lowest-precedence environment layer."""

    def get_base_environment(self) -> Mapping[str, str]: ...


class OsEnvironmentProvider:  # pylint: disable=too-few-public-methods
    """Snapshot of the engine process environment."""

    def get_base_environment(self) -> Mapping[str, str]:
        return dict(os.environ)


class FixedEnvironmentProvider:  # pylint: disable=too-few-public-methods
    """Deterministic baseline for tests and embedding callers."""

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values = dict(values or {})

    def get_base_environment(self) -> Mapping[str, str]:
        return dict(self._values)
