"""Environment resolution exports."""

from .base_environment import (
    BaseEnvironmentProvider,
    FixedEnvironmentProvider,
    OsEnvironmentProvider,
)
from .environment_resolver import (
    ENVIRONMENT_KEY_EMPTY,
    EnvironmentLayer,
    EnvironmentResolutionError,
    EnvironmentResolver,
    merge_environment_layers,
    validate_environment_keys,
)

__all__ = [
    "BaseEnvironmentProvider",
    "ENVIRONMENT_KEY_EMPTY",
    "EnvironmentLayer",
    "EnvironmentResolutionError",
    "EnvironmentResolver",
    "FixedEnvironmentProvider",
    "OsEnvironmentProvider",
    "merge_environment_layers",
    "validate_environment_keys",
]
