"""Per-type coercion of untyped parameter values."""

from __future__ import annotations

import json
import math
from collections.abc import Callable, Sequence
from typing import Any

from simple_test_orchestrator.manifest_model import ParameterType

TRUE_LITERALS = frozenset({"true", "1", "yes", "y", "on", "$true"})
FALSE_LITERALS = frozenset({"false", "0", "no", "n", "off", "$false"})


class ValueCoercionError(ValueError):
    """Raised when a raw value does not have the shape of its declared type."""


def coerce_value(parameter_type: ParameterType, raw: Any) -> Any:
    """Convert ``raw`` into the Python value for ``parameter_type``."""
    return _COERCERS[parameter_type](raw)


def _coerce_text(raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, bool) or not isinstance(raw, int | float):
        raise ValueCoercionError(f"expected a string, got {_describe(raw)}")
    return str(raw)


def _coerce_int(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValueCoercionError("expected an integer, got a boolean")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if raw.is_integer():
            return int(raw)
        raise ValueCoercionError(f"expected an integer, got {raw!r}")
    if isinstance(raw, str):
        try:
            return int(raw.strip(), 10)
        except ValueError as exc:
            raise ValueCoercionError(f"expected an integer, got {raw!r}") from exc
    raise ValueCoercionError(f"expected an integer, got {_describe(raw)}")


def _coerce_double(raw: Any) -> float:
    if isinstance(raw, bool):
        raise ValueCoercionError("expected a number, got a boolean")
    if isinstance(raw, int | float):
        number = float(raw)
    elif isinstance(raw, str):
        try:
            number = float(raw.strip())
        except ValueError as exc:
            raise ValueCoercionError(f"expected a number, got {raw!r}") from exc
    else:
        raise ValueCoercionError(f"expected a number, got {_describe(raw)}")
    if not math.isfinite(number):
        raise ValueCoercionError(f"expected a finite number, got {raw!r}")
    return number


def _coerce_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in TRUE_LITERALS:
            return True
        if lowered in FALSE_LITERALS:
            return False
    raise ValueCoercionError(f"expected a boolean, got {raw!r}")


def _coerce_json(raw: Any) -> Any:
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueCoercionError(f"expected JSON text: {exc}") from exc
    return raw


def _coerce_string_array(raw: Any) -> list[str]:
    return [_coerce_text(item) for item in _as_sequence(raw)]


def _coerce_int_array(raw: Any) -> list[int]:
    return [_coerce_int(item) for item in _as_sequence(raw)]


def _as_sequence(raw: Any) -> Sequence[Any]:
    candidate = raw
    if isinstance(raw, str):
        try:
            candidate = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueCoercionError(f"expected a JSON array: {exc}") from exc
    if isinstance(candidate, str) or not isinstance(candidate, Sequence):
        raise ValueCoercionError(f"expected an array, got {_describe(candidate)}")
    return candidate


def _describe(raw: Any) -> str:
    if raw is None:
        return "null"
    return type(raw).__name__


_COERCERS: dict[ParameterType, Callable[[Any], Any]] = {
    ParameterType.STRING: _coerce_text,
    ParameterType.PATH: _coerce_text,
    ParameterType.ENUM: _coerce_text,
    ParameterType.INT: _coerce_int,
    ParameterType.DOUBLE: _coerce_double,
    ParameterType.BOOL: _coerce_bool,
    ParameterType.JSON: _coerce_json,
    ParameterType.STRING_ARRAY: _coerce_string_array,
    ParameterType.INT_ARRAY: _coerce_int_array,
}
