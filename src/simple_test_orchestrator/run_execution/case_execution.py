"""Single test case execution: snapshot, launch, capture, persist."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from simple_test_orchestrator.manifest_discovery import (
    DiscoveredTestCase,
    canonical_path,
    is_contained,
)
from simple_test_orchestrator.manifest_model import RunnerHints
from simple_test_orchestrator.parameter_binding import BoundParameters
from simple_test_orchestrator.process_execution import (
    CancellationToken,
    ErrorInfo,
    ErrorSource,
    ErrorType,
    ProcessOutcome,
    RunStatus,
    ScriptInvocation,
    build_arguments,
    render_command_line,
)
from simple_test_orchestrator.run_storage import (
    EventLog,
    RunContext,
    RunStore,
    RunType,
    ScopeIdentities,
    TestCaseResult,
)

from .progress_reporting import (
    ExecutionReporter,
    NodeFinished,
    NullExecutionReporter,
    PlannedNode,
)
from .runtime_metadata import runner_metadata

WORKING_DIR_CONTAINMENT_FAILED = "WorkingDir.Containment.Failed"
SECRET_ON_COMMAND_LINE = "EnvRef.SecretOnCommandLine"
PRIVILEGE_NOT_ELEVATED = "Privilege.AdminPreferred.NotElevated"
REPORT_MISSING = "Script.Report.Missing"
REPORT_INVALID = "Script.Report.Invalid"

logger = logging.getLogger(__name__)


class ScriptRunner(Protocol):  # pylint: disable=too-few-public-methods
    """Runs one script invocation to a classified outcome."""

    def run(
        self, invocation: ScriptInvocation, cancellation: CancellationToken | None = None
    ) -> ProcessOutcome:
        """Execute ``invocation`` and classify how it ended."""


@dataclass(frozen=True)
class ExecutionSettings:
    """Engine-wide launch settings shared by every case run."""

    interpreter: str
    default_timeout_seconds: int
    module_search_path: Path | None = None


@dataclass(frozen=True)
class PreparedCase:  # pylint: disable=too-many-instance-attributes
    """A test case with its bound parameters and effective environment."""

    case: DiscoveredTestCase
    parameters: BoundParameters
    environment: Mapping[str, str]
    scope: ScopeIdentities
    node_id: str | None = None
    working_dir: str | None = None
    runner_hints: RunnerHints = field(default_factory=RunnerHints)
    privilege_warning: bool = False


@dataclass(frozen=True)
class _AttemptContext:
    """Per-attempt facts carried from launch to result."""

    run: RunContext
    attempt: int
    parent_run_id: str | None
    interpreter: str
    command_line: str


class CaseExecutor:
    """Run prepared test cases through the run store and the script runner."""

    def __init__(
        self,
        run_store: RunStore,
        script_runner: ScriptRunner,
        settings: ExecutionSettings,
        reporter: ExecutionReporter | None = None,
    ) -> None:
        self._run_store = run_store
        self._script_runner = script_runner
        self._settings = settings
        self._reporter = reporter or NullExecutionReporter()

    def execute(
        self,
        prepared: PreparedCase,
        *,
        attempt: int = 1,
        parent_run_id: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> TestCaseResult:
        """Execute one attempt of a prepared case and persist its result.

        Every execution-tier failure ends up in the returned result; only
        storage failures propagate. Without ``parent_run_id`` the case run is
        the top-level run and reports its own progress; otherwise the owning
        suite reports it.
        """
        manifest = prepared.case.manifest
        context = self._run_store.create_run(
            manifest.document, prepared.parameters, prepared.environment
        )
        if parent_run_id is None:
            node_id = progress_node_id(prepared)
            self._reporter.on_run_planned(
                context.run_id,
                RunType.TEST_CASE,
                [PlannedNode(node_id, prepared.case.identity, RunType.TEST_CASE)],
            )
            self._reporter.on_node_started(context.run_id, node_id)
        events = self._run_store.event_log(context)
        interpreter = prepared.runner_hints.interpreter or self._settings.interpreter
        command = [
            interpreter,
            *prepared.runner_hints.interpreter_args,
            str(prepared.case.script_path),
            *build_arguments(prepared.parameters, redact_secrets=True),
        ]
        attempt_context = _AttemptContext(
            run=context,
            attempt=attempt,
            parent_run_id=parent_run_id,
            interpreter=interpreter,
            command_line=render_command_line(command),
        )
        self._record_warnings(prepared, events)

        working_dir = _resolve_working_dir(context.run_folder, prepared.working_dir)
        if working_dir is None:
            events.error(
                WORKING_DIR_CONTAINMENT_FAILED,
                f"workingDir '{prepared.working_dir}' resolves outside the run folder.",
                {"workingDir": prepared.working_dir, "runFolder": str(context.run_folder)},
            )
            moment = self._run_store.now()
            outcome = ProcessOutcome(
                status=RunStatus.ERROR,
                start_time=moment,
                end_time=moment,
                error=ErrorInfo(
                    type=ErrorType.RUNNER_ERROR,
                    source=ErrorSource.RUNNER,
                    message=f"workingDir '{prepared.working_dir}' escapes the run folder.",
                ),
            )
            return self._finish(prepared, attempt_context, outcome, None)

        invocation = ScriptInvocation(
            interpreter=interpreter,
            interpreter_args=prepared.runner_hints.interpreter_args,
            script_path=prepared.case.script_path,
            arguments=tuple(build_arguments(prepared.parameters)),
            working_dir=working_dir,
            environment=prepared.environment,
            timeout_seconds=manifest.timeout_seconds or self._settings.default_timeout_seconds,
            stdout_path=context.stdout_path,
            stderr_path=context.stderr_path,
            module_search_path=self._settings.module_search_path,
        )
        events.info(
            "Run.Started",
            f"Starting {prepared.case.identity} attempt {attempt}.",
            {"commandLine": attempt_context.command_line, "workingDir": str(working_dir)},
        )
        logger.info("Running %s as %s", prepared.case.identity, context.run_id)
        outcome = self._script_runner.run(invocation, cancellation)
        report = _read_report(context, outcome, events)
        return self._finish(prepared, attempt_context, outcome, report)

    def _finish(
        self,
        prepared: PreparedCase,
        attempt_context: _AttemptContext,
        outcome: ProcessOutcome,
        report: Any,
    ) -> TestCaseResult:
        context = attempt_context.run
        result = TestCaseResult(
            run_id=context.run_id,
            scope=prepared.scope,
            status=outcome.status,
            start_time=outcome.start_time,
            end_time=outcome.end_time,
            runner=runner_metadata(attempt_context.interpreter, attempt_context.command_line),
            effective_inputs=prepared.parameters.snapshot(),
            exit_code=outcome.exit_code,
            error=outcome.error,
            node_id=prepared.node_id,
            attempt=attempt_context.attempt,
            parent_run_id=attempt_context.parent_run_id,
            report=report,
        )
        events = self._run_store.event_log(context)
        data: dict[str, Any] = {"status": outcome.status.value, "exitCode": outcome.exit_code}
        if outcome.error is not None:
            data["error"] = outcome.error.to_document()
        events.info("Run.Completed", f"Run finished with {outcome.status.value}.", data)
        self._run_store.write_result(context, result)
        if attempt_context.parent_run_id is None:
            self._reporter.on_node_finished(
                context.run_id,
                NodeFinished(
                    node_id=progress_node_id(prepared),
                    status=result.status,
                    start_time=result.start_time,
                    end_time=result.end_time,
                    child_run_id=context.run_id,
                    attempt=result.attempt,
                    message=outcome.error.message if outcome.error is not None else None,
                ),
            )
            self._reporter.on_run_finished(context.run_id, result.status)
        return result

    @staticmethod
    def _record_warnings(prepared: PreparedCase, events: EventLog) -> None:
        secret_names = prepared.parameters.secret_names
        if secret_names:
            events.warning(
                SECRET_ON_COMMAND_LINE,
                "Secret values are passed to the script as command-line arguments.",
                {"parameters": list(secret_names)},
            )
        if prepared.privilege_warning:
            events.warning(
                PRIVILEGE_NOT_ELEVATED,
                f"{prepared.case.identity} prefers elevation; running without it.",
            )


def progress_node_id(prepared: PreparedCase) -> str:
    return prepared.node_id or str(prepared.case.identity)


def _resolve_working_dir(run_folder: Path, working_dir: str | None) -> Path | None:
    if not working_dir:
        return run_folder
    root = canonical_path(run_folder)
    resolved = canonical_path(root / working_dir)
    if not is_contained(root, resolved):
        return None
    resolved.mkdir(parents=True, exist_ok=True)
    return resolved


def _read_report(context: RunContext, outcome: ProcessOutcome, events: EventLog) -> Any:
    report_path = context.report_path
    if not report_path.is_file():
        if outcome.exit_code is not None:
            events.warning(REPORT_MISSING, f"Script did not write {report_path.name}.")
        return None
    try:
        return json.loads(report_path.read_text(encoding="utf-8-sig"))
    except (OSError, ValueError) as exc:
        events.warning(REPORT_INVALID, f"Cannot read {report_path.name}: {exc}")
        return None
