"""Parameter binding entities."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from simple_test_orchestrator.manifest_model import ParameterType

REDACTED_VALUE = "***"


@dataclass(frozen=True)
class BoundValue:
    """A parameter value coerced to its declared type, tagged by that type."""

    name: str
    parameter_type: ParameterType
    value: Any
    supplied: bool
    secret: bool = False
    env_variable: str | None = None

    @property
    def snapshot_value(self) -> Any:
        return REDACTED_VALUE if self.secret else self.value


@dataclass(frozen=True)
class BoundParameters(Mapping[str, BoundValue]):
    """Ordered result of binding, keyed by parameter name."""

    entries: tuple[BoundValue, ...] = ()

    def __getitem__(self, name: str) -> BoundValue:
        for bound in self.entries:
            if bound.name == name:
                return bound
        raise KeyError(name)

    def __iter__(self) -> Iterator[str]:
        return (bound.name for bound in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def plain_values(self) -> dict[str, Any]:
        """Return name -> value exactly as passed to the script."""
        return {bound.name: bound.value for bound in self.entries}

    def snapshot(self) -> dict[str, Any]:
        """Return name -> value with secret values redacted."""
        return {bound.name: bound.snapshot_value for bound in self.entries}

    @property
    def secret_names(self) -> tuple[str, ...]:
        return tuple(bound.name for bound in self.entries if bound.secret)

    @property
    def secret_variables(self) -> tuple[str, ...]:
        """Environment variables whose values were bound as secrets."""
        return tuple(
            bound.env_variable for bound in self.entries if bound.secret and bound.env_variable
        )
