"""Parameter binding service."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from simple_test_orchestrator.manifest_model import ParameterDefinition, ParameterType

from .bound_values import BoundParameters, BoundValue
from .env_refs import is_env_ref, resolve_env_ref
from .value_coercion import ValueCoercionError, coerce_value

PARAMETER_UNKNOWN = "Parameter.Unknown"
PARAMETER_REQUIRED = "Parameter.Required"
PARAMETER_TYPE_INVALID = "Parameter.Type.Invalid"
PARAMETER_RANGE_INVALID = "Parameter.Range.Invalid"
PARAMETER_PATTERN_INVALID = "Parameter.Pattern.Invalid"
PARAMETER_ENUM_INVALID = "Parameter.Enum.Invalid"
ENV_REF_RESOLVE_FAILED = "EnvRef.ResolveFailed"

_MISSING = object()


class ParameterBindingError(Exception):
    """Raised when supplied values do not satisfy the parameter definitions."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        parameter: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.parameter = parameter
        self.data = dict(data or {})


def bind_parameters(
    definitions: Sequence[ParameterDefinition],
    supplied: Mapping[str, Any],
    *,
    environment: Mapping[str, str] | None = None,
) -> BoundParameters:
    """Coerce and validate supplied values against the declared parameters.

    Args:
      definitions: Parameters declared by the test case manifest, in order.
      supplied: Untyped values keyed by parameter name; values may be EnvRefs.
      environment: Effective environment used to resolve EnvRef values.

    Returns:
      The bound parameters in declaration order. Optional parameters without
      a value or default are omitted.

    Raises:
      ParameterBindingError: On the first unknown, missing or invalid value.
    """
    declared = {definition.name for definition in definitions}
    unknown = sorted(name for name in supplied if name not in declared)
    if unknown:
        raise ParameterBindingError(
            PARAMETER_UNKNOWN,
            f"Unknown parameter(s) supplied: {', '.join(unknown)}.",
            parameter=unknown[0],
            data={"unknown": unknown},
        )

    bound: list[BoundValue] = []
    for definition in definitions:
        raw = supplied.get(definition.name, _MISSING)
        result = _bind_single(definition, raw, environment or {})
        if result is not None:
            bound.append(result)
    return BoundParameters(entries=tuple(bound))


def validate_default(definition: ParameterDefinition) -> None:
    """Check that a parameter's own default satisfies its constraints."""
    if not definition.has_default:
        return
    value = _coerce(definition, definition.default)
    _check_constraints(definition, value)


def _bind_single(
    definition: ParameterDefinition, raw: Any, environment: Mapping[str, str]
) -> BoundValue | None:
    supplied = raw is not _MISSING and raw is not None
    secret = False
    env_variable: str | None = None
    if supplied and is_env_ref(raw):
        resolution = resolve_env_ref(raw, environment)
        secret = resolution.secret
        env_variable = resolution.variable or None
        if resolution.found:
            raw = resolution.value
        elif resolution.required:
            raise ParameterBindingError(
                ENV_REF_RESOLVE_FAILED,
                f"Parameter '{definition.name}' references environment variable "
                f"'{resolution.variable}' which is not set.",
                parameter=definition.name,
                data={"env": resolution.variable},
            )
        else:
            supplied = False

    if not supplied:
        if definition.has_default:
            raw = definition.default
        elif definition.required:
            raise ParameterBindingError(
                PARAMETER_REQUIRED,
                f"Missing required parameter '{definition.name}'.",
                parameter=definition.name,
            )
        else:
            return None

    value = _coerce(definition, raw)
    _check_constraints(definition, value)
    return BoundValue(
        name=definition.name,
        parameter_type=definition.parameter_type,
        value=value,
        supplied=supplied,
        secret=secret,
        env_variable=env_variable,
    )


def _coerce(definition: ParameterDefinition, raw: Any) -> Any:
    parameter_type = definition.parameter_type
    try:
        return coerce_value(parameter_type, raw)
    except ValueCoercionError as exc:
        raise ParameterBindingError(
            PARAMETER_TYPE_INVALID,
            f"Parameter '{definition.name}' expects {parameter_type.value}: {exc}.",
            parameter=definition.name,
            data={"expected": parameter_type.value},
        ) from exc


def _check_constraints(definition: ParameterDefinition, value: Any) -> None:
    parameter_type = definition.parameter_type
    items = value if parameter_type in _ARRAY_TYPES else [value]
    if parameter_type.is_numeric:
        for item in items:
            _check_range(definition, item)
    if parameter_type.is_textual and definition.pattern:
        for item in items:
            _check_pattern(definition, item)
    if parameter_type is ParameterType.ENUM and value not in definition.enum_values:
        raise ParameterBindingError(
            PARAMETER_ENUM_INVALID,
            f"Parameter '{definition.name}' value '{value}' is not one of "
            f"{list(definition.enum_values)}.",
            parameter=definition.name,
            data={"allowed": list(definition.enum_values)},
        )


def _check_range(definition: ParameterDefinition, number: float) -> None:
    below = definition.min_value is not None and number < definition.min_value
    above = definition.max_value is not None and number > definition.max_value
    if below or above:
        raise ParameterBindingError(
            PARAMETER_RANGE_INVALID,
            f"Parameter '{definition.name}' value {number} is outside "
            f"[{definition.min_value}, {definition.max_value}].",
            parameter=definition.name,
            data={"min": definition.min_value, "max": definition.max_value},
        )


def _check_pattern(definition: ParameterDefinition, text: str) -> None:
    pattern = definition.pattern or ""
    try:
        matched = re.fullmatch(pattern, text) is not None
    except re.error as exc:
        raise ParameterBindingError(
            PARAMETER_PATTERN_INVALID,
            f"Parameter '{definition.name}' pattern is not a valid expression: {exc}.",
            parameter=definition.name,
        ) from exc
    if not matched:
        raise ParameterBindingError(
            PARAMETER_PATTERN_INVALID,
            f"Parameter '{definition.name}' value '{text}' does not match '{pattern}'.",
            parameter=definition.name,
            data={"pattern": pattern},
        )


_ARRAY_TYPES = (ParameterType.STRING_ARRAY, ParameterType.INT_ARRAY)
