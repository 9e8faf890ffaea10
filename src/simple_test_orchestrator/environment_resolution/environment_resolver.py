"""Layered environment resolution service."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from simple_test_orchestrator.manifest_model import TestPlanManifest, TestSuiteManifest

from .base_environment import BaseEnvironmentProvider, OsEnvironmentProvider

ENVIRONMENT_KEY_EMPTY = "Environment.Key.Empty"

logger = logging.getLogger(__name__)


class EnvironmentResolutionError(Exception):
    """Raised when an environment layer carries an empty or whitespace key."""

    def __init__(self, layer: str, message: str) -> None:
        super().__init__(message)
        self.code = ENVIRONMENT_KEY_EMPTY
        self.layer = layer
        self.message = message


@dataclass(frozen=True)
class EnvironmentLayer:
    """One named source of environment variables."""

    name: str
    values: Mapping[str, str]


def merge_environment_layers(layers: Sequence[EnvironmentLayer]) -> dict[str, str]:
    """Merge layers low to high precedence.

    Keys compare case-insensitively. A colliding key keeps its first position
    and takes the casing and value of the last writer.
    """
    merged: dict[str, tuple[str, str]] = {}
    for layer in layers:
        for key, value in layer.values.items():
            if not isinstance(key, str) or not key.strip():
                raise EnvironmentResolutionError(
                    layer.name,
                    f"Environment key in layer '{layer.name}' must not be empty or whitespace.",
                )
            merged[key.casefold()] = (key, str(value))
    return dict(merged.values())


def validate_environment_keys(values: Mapping[str, str], layer: str) -> None:
    """Raise when ``values`` contains an empty or whitespace-only key."""
    merge_environment_layers([EnvironmentLayer(layer, values)])


class EnvironmentResolver:
    """Compute the effective environment for each run scope."""

    def __init__(self, provider: BaseEnvironmentProvider | None = None) -> None:
        self._provider = provider or OsEnvironmentProvider()

    def for_test_case(self, overrides: Mapping[str, str] | None = None) -> dict[str, str]:
        """Standalone case: OS, then run-time overrides."""
        return self._resolve(
            [
                EnvironmentLayer("os", self._provider.get_base_environment()),
                EnvironmentLayer("runRequest", overrides or {}),
            ]
        )

    def for_suite(
        self,
        suite: TestSuiteManifest,
        overrides: Mapping[str, str] | None = None,
        *,
        plan: TestPlanManifest | None = None,
    ) -> dict[str, str]:
        """Suite run: OS, then plan when given, then suite, then overrides."""
        layers = [EnvironmentLayer("os", self._provider.get_base_environment())]
        if plan is not None:
            layers.append(EnvironmentLayer(f"plan:{plan.identity}", plan.environment.env))
        layers.append(EnvironmentLayer(f"suite:{suite.identity}", suite.environment.env))
        layers.append(EnvironmentLayer("runRequest", overrides or {}))
        return self._resolve(layers)

    def for_plan(
        self,
        plan: TestPlanManifest,
        suite: TestSuiteManifest | None = None,
        overrides: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """Plan run: OS, then suite, then plan, then overrides."""
        layers = [EnvironmentLayer("os", self._provider.get_base_environment())]
        if suite is not None:
            layers.append(EnvironmentLayer(f"suite:{suite.identity}", suite.environment.env))
        layers.append(EnvironmentLayer(f"plan:{plan.identity}", plan.environment.env))
        layers.append(EnvironmentLayer("runRequest", overrides or {}))
        return self._resolve(layers)

    def _resolve(self, layers: Sequence[EnvironmentLayer]) -> dict[str, str]:
        merged = merge_environment_layers(layers)
        logger.debug(
            "resolved environment from layers %s (%d keys)",
            [layer.name for layer in layers],
            len(merged),
        )
        return merged
