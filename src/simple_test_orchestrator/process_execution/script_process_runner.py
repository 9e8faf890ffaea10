"""Script process runner: launch, stream output, race the timeout, classify."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

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
from .process_tree import ProcessTreeTerminator, default_terminator, process_group_options

MODULE_SEARCH_PATH_VARIABLE = "PYTHONPATH"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScriptInvocation:  # pylint: disable=too-many-instance-attributes
    """Everything needed to launch one test case script."""

    interpreter: str
    script_path: Path
    working_dir: Path
    stdout_path: Path
    stderr_path: Path
    timeout_seconds: float
    arguments: tuple[str, ...] = ()
    interpreter_args: tuple[str, ...] = ()
    environment: Mapping[str, str] = field(default_factory=dict)
    module_search_path: Path | None = None

    def command(self) -> list[str]:
        return [self.interpreter, *self.interpreter_args, str(self.script_path), *self.arguments]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ScriptProcessRunner:
    """Execute scripts as child processes under a wall-clock timeout."""

    def __init__(
        self,
        terminator: ProcessTreeTerminator | None = None,
        *,
        poll_interval_seconds: float = 0.1,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._terminator = terminator or default_terminator()
        self._poll_interval_seconds = poll_interval_seconds
        self._clock = clock

    def run(
        self, invocation: ScriptInvocation, cancellation: CancellationToken | None = None
    ) -> ProcessOutcome:
        """Run the script and return its classified outcome.

        Launch failures, timeouts and cancellation are reported as outcomes;
        nothing the script does is raised to the caller.
        """
        start_time = self._clock()
        command = invocation.command()
        environment = runtime_environment(invocation.environment, invocation.module_search_path)
        with (
            invocation.stdout_path.open("wb") as stdout_handle,
            invocation.stderr_path.open("wb") as stderr_handle,
        ):
            try:
                process = subprocess.Popen(  # pylint: disable=consider-using-with
                    command,
                    cwd=invocation.working_dir,
                    env=environment,
                    stdin=subprocess.DEVNULL,
                    stdout=stdout_handle,
                    stderr=stderr_handle,
                    **process_group_options(),
                )
            except OSError as exc:
                logger.warning("Failed to launch %s: %s", invocation.interpreter, exc)
                return ProcessOutcome(
                    status=RunStatus.ERROR,
                    start_time=start_time,
                    end_time=self._clock(),
                    error=ErrorInfo(
                        type=ErrorType.RUNNER_ERROR,
                        source=ErrorSource.RUNNER,
                        message=f"Failed to launch '{invocation.interpreter}': {exc}",
                    ),
                )
            logger.debug("Started pid %s: %s", process.pid, command[:3])
            return self._await(process, invocation, cancellation, start_time)

    def _await(
        self,
        process: subprocess.Popen[bytes],
        invocation: ScriptInvocation,
        cancellation: CancellationToken | None,
        start_time: datetime,
    ) -> ProcessOutcome:
        deadline = time.monotonic() + invocation.timeout_seconds
        while True:
            wait_seconds = min(self._poll_interval_seconds, deadline - time.monotonic())
            try:
                exit_code = process.wait(timeout=max(0.0, wait_seconds))
            except subprocess.TimeoutExpired:
                pass
            else:
                return ProcessOutcome(
                    status=status_from_exit_code(exit_code),
                    start_time=start_time,
                    end_time=self._clock(),
                    exit_code=exit_code,
                    error=error_for_exit_code(exit_code),
                )

            if cancellation is not None and cancellation.is_cancelled:
                self._terminate(process)
                return ProcessOutcome(
                    status=RunStatus.ABORTED,
                    start_time=start_time,
                    end_time=self._clock(),
                    error=ErrorInfo(
                        type=ErrorType.ABORTED,
                        source=ErrorSource.RUNNER,
                        message="Run was cancelled.",
                    ),
                )
            if time.monotonic() >= deadline:
                self._terminate(process)
                return ProcessOutcome(
                    status=RunStatus.TIMEOUT,
                    start_time=start_time,
                    end_time=self._clock(),
                    error=ErrorInfo(
                        type=ErrorType.TIMEOUT,
                        source=ErrorSource.RUNNER,
                        message=f"Script exceeded timeout of {invocation.timeout_seconds:g}s.",
                    ),
                )

    def _terminate(self, process: subprocess.Popen[bytes]) -> None:
        logger.info("Terminating process tree of pid %s", process.pid)
        self._terminator.terminate_tree(process.pid)
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()


def runtime_environment(
    environment: Mapping[str, str], module_search_path: Path | None
) -> dict[str, str]:
    """Return the process environment with runner-owned variables applied."""
    runtime = dict(environment)
    runtime["PYTHONUNBUFFERED"] = "1"
    if module_search_path is None:
        return runtime
    existing_key = next(
        (key for key in runtime if key.casefold() == MODULE_SEARCH_PATH_VARIABLE.casefold()),
        MODULE_SEARCH_PATH_VARIABLE,
    )
    existing = runtime.get(existing_key, "")
    entries = [str(module_search_path)]
    if existing:
        entries.append(existing)
    runtime[existing_key] = os.pathsep.join(entries)
    return runtime
