"""Parameter binding exports."""

from .bound_values import REDACTED_VALUE, BoundParameters, BoundValue
from .env_refs import is_env_ref
from .parameter_binder import (
    ENV_REF_RESOLVE_FAILED,
    PARAMETER_ENUM_INVALID,
    PARAMETER_PATTERN_INVALID,
    PARAMETER_RANGE_INVALID,
    PARAMETER_REQUIRED,
    PARAMETER_TYPE_INVALID,
    PARAMETER_UNKNOWN,
    ParameterBindingError,
    bind_parameters,
    validate_default,
)
from .value_coercion import ValueCoercionError, coerce_value

__all__ = [
    "BoundParameters",
    "BoundValue",
    "ENV_REF_RESOLVE_FAILED",
    "PARAMETER_ENUM_INVALID",
    "PARAMETER_PATTERN_INVALID",
    "PARAMETER_RANGE_INVALID",
    "PARAMETER_REQUIRED",
    "PARAMETER_TYPE_INVALID",
    "PARAMETER_UNKNOWN",
    "REDACTED_VALUE",
    "ParameterBindingError",
    "ValueCoercionError",
    "bind_parameters",
    "coerce_value",
    "is_env_ref",
    "validate_default",
]
