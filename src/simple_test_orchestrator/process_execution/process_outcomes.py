"""Process execution outcome entities and exit-code classification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class RunStatus(str, Enum):
    """Terminal status of a test case run."""

    PASSED = "Passed"
    FAILED = "Failed"
    ERROR = "Error"
    TIMEOUT = "Timeout"
    ABORTED = "Aborted"


class ErrorType(str, Enum):
    SCRIPT_ERROR = "ScriptError"
    RUNNER_ERROR = "RunnerError"
    TIMEOUT = "Timeout"
    ABORTED = "Aborted"


class ErrorSource(str, Enum):
    SCRIPT = "Script"
    RUNNER = "Runner"


@dataclass(frozen=True)
class ErrorInfo:
    """Structured description of why a run did not pass or fail cleanly."""

    type: ErrorType
    source: ErrorSource
    message: str
    stack: str | None = None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "type": self.type.value,
            "source": self.source.value,
            "message": self.message,
        }
        if self.stack:
            document["stack"] = self.stack
        return document


@dataclass(frozen=True)
class ProcessOutcome:
    """Classified result of one script process."""

    status: RunStatus
    start_time: datetime
    end_time: datetime
    exit_code: int | None = None
    error: ErrorInfo | None = None


_EXIT_CODE_STATUSES = {
    0: RunStatus.PASSED,
    1: RunStatus.FAILED,
    2: RunStatus.ERROR,
}


def status_from_exit_code(exit_code: int) -> RunStatus:
    """Map the 0/1/2 exit-code convention; anything else is an error."""
    return _EXIT_CODE_STATUSES.get(exit_code, RunStatus.ERROR)


def error_for_exit_code(exit_code: int) -> ErrorInfo | None:
    """Describe a script-side error exit, or None for pass/fail exits."""
    if status_from_exit_code(exit_code) is not RunStatus.ERROR:
        return None
    if exit_code < 0:
        message = f"Script was terminated by signal {-exit_code}."
    else:
        message = f"Script exited with code {exit_code}."
    return ErrorInfo(type=ErrorType.SCRIPT_ERROR, source=ErrorSource.SCRIPT, message=message)
