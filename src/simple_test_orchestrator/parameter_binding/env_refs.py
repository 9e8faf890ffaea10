"""Resolution of ``{"$env": ...}`` parameter values."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

ENV_REF_KEY = "$env"


@dataclass(frozen=True)
class EnvRefResolution:
    """Outcome of looking up an environment reference."""

    found: bool
    value: Any
    secret: bool
    required: bool
    variable: str


def is_env_ref(value: Any) -> bool:
    return isinstance(value, Mapping) and ENV_REF_KEY in value


def resolve_env_ref(
    reference: Mapping[str, Any], environment: Mapping[str, str]
) -> EnvRefResolution:
    """Look up the referenced variable, falling back to the reference's default."""
    variable = str(reference.get(ENV_REF_KEY) or "").strip()
    secret = bool(reference.get("secret", False))
    required = bool(reference.get("required", False))
    folded = variable.casefold()
    for key, value in environment.items():
        if key.casefold() == folded and variable:
            return EnvRefResolution(True, value, secret, required, variable)
    if reference.get("default") is not None:
        return EnvRefResolution(True, reference["default"], secret, required, variable)
    return EnvRefResolution(False, None, secret, required, variable)
