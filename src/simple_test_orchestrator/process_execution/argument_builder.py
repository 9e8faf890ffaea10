"""Render bound parameters as named command-line arguments."""

from __future__ import annotations

import json
import shlex
import subprocess
import sys
from collections.abc import Callable, Sequence
from typing import Any

from simple_test_orchestrator.manifest_model import ParameterType
from simple_test_orchestrator.parameter_binding import REDACTED_VALUE, BoundParameters, BoundValue


def build_arguments(parameters: BoundParameters, *, redact_secrets: bool = False) -> list[str]:
    """Return ``--name value`` pairs in declaration order.

    With ``redact_secrets`` the values of EnvRef secrets are replaced by the
    redaction marker, which is what logs and snapshots show.
    """
    arguments: list[str] = []
    for bound in parameters.values():
        arguments.append(f"--{bound.name}")
        if redact_secrets and bound.secret:
            arguments.append(REDACTED_VALUE)
        else:
            arguments.append(format_argument_value(bound))
    return arguments


def format_argument_value(bound: BoundValue) -> str:
    """Format one value the way the script interpreter reads literals."""
    formatter = _FORMATTERS.get(bound.parameter_type, _format_text)
    return formatter(bound.value)


def render_command_line(command: Sequence[str]) -> str:
    """Return a shell-quoted display form of ``command``."""
    if sys.platform == "win32":
        return subprocess.list2cmdline(list(command))
    return shlex.join(command)


def _format_bool(value: Any) -> str:
    return "True" if value else "False"


def _format_number(value: Any) -> str:
    return str(value)


def _format_text(value: Any) -> str:
    return str(value)


def _format_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _format_list(value: Any) -> str:
    return repr(list(value))


_FORMATTERS: dict[ParameterType, Callable[[Any], str]] = {
    ParameterType.BOOL: _format_bool,
    ParameterType.INT: _format_number,
    ParameterType.DOUBLE: _format_number,
    ParameterType.STRING: _format_text,
    ParameterType.ENUM: _format_text,
    ParameterType.PATH: _format_text,
    ParameterType.JSON: _format_json,
    ParameterType.STRING_ARRAY: _format_list,
    ParameterType.INT_ARRAY: _format_list,
}
