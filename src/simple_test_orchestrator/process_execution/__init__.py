"""Process execution exports."""

from .argument_builder import build_arguments, format_argument_value, render_command_line
from .cancellation import CancellationToken
from .process_outcomes import (
    ErrorInfo,
    ErrorSource,
    ErrorType,
    ProcessOutcome,
    RunStatus,
    error_for_exit_code,
    status_from_exit_code,
)
from .process_tree import (
    PosixProcessTreeTerminator,
    ProcessTreeTerminator,
    WindowsProcessTreeTerminator,
    default_terminator,
    process_group_options,
)
from .script_process_runner import (
    MODULE_SEARCH_PATH_VARIABLE,
    ScriptInvocation,
    ScriptProcessRunner,
    runtime_environment,
)

__all__ = [
    "CancellationToken",
    "ErrorInfo",
    "ErrorSource",
    "ErrorType",
    "MODULE_SEARCH_PATH_VARIABLE",
    "PosixProcessTreeTerminator",
    "ProcessOutcome",
    "ProcessTreeTerminator",
    "RunStatus",
    "ScriptInvocation",
    "ScriptProcessRunner",
    "WindowsProcessTreeTerminator",
    "build_arguments",
    "default_terminator",
    "error_for_exit_code",
    "format_argument_value",
    "process_group_options",
    "render_command_line",
    "runtime_environment",
    "status_from_exit_code",
]
