"""Configuration domain entities."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ManifestRoots:
    """Directories scanned for each manifest kind."""

    test_cases: Path
    test_suites: Path
    test_plans: Path


@dataclass(frozen=True)
class RunnerSettings:
    """How test case scripts are launched and supervised."""

    interpreter: str
    script_name: str
    module_search_path: Path | None
    default_timeout_seconds: int
    termination_grace_seconds: float
    poll_interval_ms: int

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000


@dataclass(frozen=True)
class LoggingSettings:
    """Process logging configuration."""

    level: str


@dataclass(frozen=True)
class Configuration:
    """Top-level configuration aggregate."""

    path: Path | None
    roots: ManifestRoots
    runs_root: Path
    runner: RunnerSettings
    logging: LoggingSettings
