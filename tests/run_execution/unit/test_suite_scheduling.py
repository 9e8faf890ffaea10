"""Suite and plan scheduling tests with a scripted runner."""

from __future__ import annotations

import json
import sys
import threading
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

import pytest
from simple_test_orchestrator.configuration import (
    Configuration,
    LoggingSettings,
    ManifestRoots,
    RunnerSettings,
)
from simple_test_orchestrator.environment_resolution import FixedEnvironmentProvider
from simple_test_orchestrator.process_execution import (
    CancellationToken,
    ProcessOutcome,
    RunStatus,
    ScriptInvocation,
)
from simple_test_orchestrator.run_execution import (
    PRIVILEGE_REQUIRED,
    RUN_REQUEST_CASE_NODE_OVERRIDES,
    RUN_REQUEST_SUITE_CASE_INPUTS,
    RUN_REQUEST_UNKNOWN_NODE_ID,
    FixedPrivilegeChecker,
    NodeFinished,
    PlannedNode,
    RunRequest,
    RunRequestError,
    RunTargetKind,
    TestOrchestrationEngine,
)
from simple_test_orchestrator.run_storage import RunType, read_run_index

_EXIT_CODES = {RunStatus.PASSED: 0, RunStatus.FAILED: 1, RunStatus.ERROR: 2}


class ScriptedRunner:
    """Return queued statuses per case folder and track concurrency."""

    def __init__(self, statuses: dict[str, list[RunStatus]], delay_seconds: float = 0.0) -> None:
        self._statuses = {case: list(queue) for case, queue in statuses.items()}
        self._delay_seconds = delay_seconds
        self._lock = threading.Lock()
        self._active = 0
        self.peak = 0
        self.calls: list[str] = []
        self.invocations: list[ScriptInvocation] = []

    def run(
        self, invocation: ScriptInvocation, cancellation: CancellationToken | None = None
    ) -> ProcessOutcome:
        case = invocation.script_path.parent.name
        with self._lock:
            self.calls.append(case)
            self.invocations.append(invocation)
            self._active += 1
            self.peak = max(self.peak, self._active)
        time.sleep(self._delay_seconds)
        with self._lock:
            self._active -= 1
            queue = self._statuses.get(case, [RunStatus.PASSED])
            status = queue.pop(0) if len(queue) > 1 else queue[0]
        moment = datetime.now(UTC)
        return ProcessOutcome(
            status=status, start_time=moment, end_time=moment, exit_code=_EXIT_CODES.get(status)
        )


class RecordingReporter:
    """Collect progress notifications as (event, run id, payload) tuples."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.calls: list[tuple[str, str, object]] = []

    def on_run_planned(
        self, run_id: str, run_type: RunType, planned_nodes: Sequence[PlannedNode]
    ) -> None:
        self._record("planned", run_id, (run_type, tuple(planned_nodes)))

    def on_node_started(self, run_id: str, node_id: str) -> None:
        self._record("started", run_id, node_id)

    def on_node_finished(self, run_id: str, node: NodeFinished) -> None:
        self._record("finished", run_id, node)

    def on_run_finished(self, run_id: str, status: RunStatus) -> None:
        self._record("done", run_id, status)

    def for_run(self, run_id: str) -> list[tuple[str, object]]:
        return [(event, payload) for event, owner, payload in self.calls if owner == run_id]

    def _record(self, event: str, run_id: str, payload: object) -> None:
        with self._lock:
            self.calls.append((event, run_id, payload))


class Workspace:
    """Manifest roots plus an engine wired to a scripted runner."""

    def __init__(self, base: Path) -> None:
        self.base = base
        self.cases = base / "cases"
        self.suites = base / "suites"
        self.plans = base / "plans"
        self.runs = base / "runs"
        for root in (self.cases, self.suites, self.plans):
            root.mkdir(parents=True)

    def add_case(self, name: str, *, privilege: str = "User", parameters: list | None = None):
        folder = self.cases / name
        folder.mkdir()
        _write_json(
            folder / "test.manifest.json",
            {
                "schemaVersion": "1.0",
                "id": name,
                "name": name,
                "category": "Unit",
                "version": "1",
                "privilege": privilege,
                "parameters": parameters or [],
            },
        )
        (folder / "run.py").write_text("", encoding="utf-8")

    def add_suite(self, name: str, nodes: list, **controls: object) -> None:
        folder = self.suites / name
        folder.mkdir()
        _write_json(
            folder / "suite.manifest.json",
            {
                "schemaVersion": "1.0",
                "id": name,
                "name": name,
                "version": "1",
                "testCases": [
                    node if isinstance(node, dict) else {"nodeId": node, "ref": node}
                    for node in nodes
                ],
                "controls": controls,
            },
        )

    def add_plan(self, name: str, suites: list[str]) -> None:
        folder = self.plans / name
        folder.mkdir()
        _write_json(
            folder / "plan.manifest.json",
            {
                "schemaVersion": "1.0",
                "id": name,
                "name": name,
                "version": "1",
                "suites": [f"{suite}@1" for suite in suites],
            },
        )

    def engine(
        self,
        runner: ScriptedRunner,
        *,
        elevated: bool = False,
        reporter: RecordingReporter | None = None,
    ) -> TestOrchestrationEngine:
        configuration = Configuration(
            path=None,
            roots=ManifestRoots(self.cases, self.suites, self.plans),
            runs_root=self.runs,
            runner=RunnerSettings(
                interpreter=sys.executable,
                script_name="run.py",
                module_search_path=None,
                default_timeout_seconds=30,
                termination_grace_seconds=1,
                poll_interval_ms=20,
            ),
            logging=LoggingSettings(level="WARNING"),
        )
        return TestOrchestrationEngine(
            configuration,
            environment_provider=FixedEnvironmentProvider({"BASE": "1"}),
            script_runner=runner,
            privilege_checker=FixedPrivilegeChecker(elevated),
            reporter=reporter,
        )


def _write_json(path: Path, document: object) -> None:
    path.write_text(json.dumps(document), encoding="utf-8")


def _read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def _children(run_folder: Path) -> list[dict]:
    lines = (run_folder / "children.jsonl").read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def _suite_request(name: str, **kwargs: object) -> RunRequest:
    return RunRequest(kind=RunTargetKind.SUITE, target=f"{name}@1", **kwargs)


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    return Workspace(tmp_path)


def test_max_parallel_bounds_concurrent_nodes(workspace: Workspace) -> None:
    names = [f"case{number}" for number in range(5)]
    for name in names:
        workspace.add_case(name)
    workspace.add_suite("Wide", names, maxParallel=2, continueOnFailure=True)
    runner = ScriptedRunner({}, delay_seconds=0.2)

    outcome = workspace.engine(runner).run(_suite_request("Wide"))

    assert runner.peak == 2
    assert sorted(runner.calls) == names
    assert outcome.status is RunStatus.PASSED
    result = _read_json(outcome.run_folder / "result.json")
    assert result["counts"]["Passed"] == 5
    assert result["counts"]["Total"] == 5
    assert len(result["childRunIds"]) == 5


def test_stop_on_failure_skips_remaining_nodes(workspace: Workspace) -> None:
    for name in ("a", "b", "c"):
        workspace.add_case(name)
    workspace.add_suite("Serial", ["a", "b", "c"], continueOnFailure=False)
    runner = ScriptedRunner({"b": [RunStatus.FAILED]})

    outcome = workspace.engine(runner).run(_suite_request("Serial"))

    assert runner.calls == ["a", "b"]
    assert outcome.status is RunStatus.FAILED
    counts = _read_json(outcome.run_folder / "result.json")["counts"]
    assert (counts["Passed"], counts["Failed"], counts["Skipped"]) == (1, 1, 1)


def test_continue_on_failure_runs_every_node(workspace: Workspace) -> None:
    for name in ("a", "b", "c"):
        workspace.add_case(name)
    workspace.add_suite("Lenient", ["a", "b", "c"], continueOnFailure=True)
    runner = ScriptedRunner({"b": [RunStatus.FAILED]})

    outcome = workspace.engine(runner).run(_suite_request("Lenient"))

    assert runner.calls == ["a", "b", "c"]
    assert outcome.status is RunStatus.FAILED
    assert _read_json(outcome.run_folder / "result.json")["counts"]["Skipped"] == 0


def test_retry_on_error_records_every_attempt(workspace: Workspace) -> None:
    workspace.add_case("flaky")
    workspace.add_suite("Retry", ["flaky"], retryOnError=2)
    runner = ScriptedRunner({"flaky": [RunStatus.ERROR, RunStatus.ERROR, RunStatus.PASSED]})

    outcome = workspace.engine(runner).run(_suite_request("Retry"))

    assert runner.calls == ["flaky", "flaky", "flaky"]
    assert outcome.status is RunStatus.PASSED
    assert len(outcome.child_run_ids) == 3
    children = _children(outcome.run_folder)
    assert [child["attempt"] for child in children] == [1, 2, 3]
    assert [child["status"] for child in children] == ["Error", "Error", "Passed"]
    counts = _read_json(outcome.run_folder / "result.json")["counts"]
    assert (counts["Passed"], counts["Error"], counts["Total"]) == (1, 0, 1)
    case_entries = [
        entry
        for entry in read_run_index(workspace.runs)
        if entry.run_type is RunType.TEST_CASE
    ]
    assert [entry.attempt for entry in case_entries] == [1, 2, 3]
    assert {entry.parent_run_id for entry in case_entries} == {outcome.run_id}


def test_failed_nodes_are_never_retried(workspace: Workspace) -> None:
    workspace.add_case("broken")
    workspace.add_suite("NoRetry", ["broken"], retryOnError=3)
    runner = ScriptedRunner({"broken": [RunStatus.FAILED]})

    outcome = workspace.engine(runner).run(_suite_request("NoRetry"))

    assert runner.calls == ["broken"]
    assert outcome.status is RunStatus.FAILED


def test_repeat_enqueues_independent_runs(workspace: Workspace) -> None:
    workspace.add_case("a")
    workspace.add_suite("Loop", ["a"], repeat=3)
    runner = ScriptedRunner({})

    outcome = workspace.engine(runner).run(_suite_request("Loop"))

    assert runner.calls == ["a", "a", "a"]
    assert len(set(outcome.child_run_ids)) == 3


def test_timeout_stops_suite_under_abort_on_timeout(workspace: Workspace) -> None:
    for name in ("slow", "next"):
        workspace.add_case(name)
    workspace.add_suite("Guarded", ["slow", "next"], continueOnFailure=True)
    runner = ScriptedRunner({"slow": [RunStatus.TIMEOUT]})

    outcome = workspace.engine(runner).run(_suite_request("Guarded"))

    assert runner.calls == ["slow"]
    assert outcome.status is RunStatus.TIMEOUT
    result = _read_json(outcome.run_folder / "result.json")
    assert result["counts"]["Skipped"] == 1
    assert "timed out" in result["message"]


def test_timeout_policy_continue_keeps_scheduling(workspace: Workspace) -> None:
    for name in ("slow", "next"):
        workspace.add_case(name)
    workspace.add_suite(
        "Tolerant", ["slow", "next"], continueOnFailure=True, timeoutPolicy="Continue"
    )
    runner = ScriptedRunner({"slow": [RunStatus.TIMEOUT]})

    outcome = workspace.engine(runner).run(_suite_request("Tolerant"))

    assert runner.calls == ["slow", "next"]
    assert outcome.status is RunStatus.TIMEOUT


def test_cancelled_suite_is_aborted_and_starts_nothing(workspace: Workspace) -> None:
    workspace.add_case("a")
    workspace.add_suite("Cancelled", ["a"])
    runner = ScriptedRunner({})
    cancellation = CancellationToken()
    cancellation.cancel()

    outcome = workspace.engine(runner).run(_suite_request("Cancelled"), cancellation)

    assert runner.calls == []
    assert outcome.status is RunStatus.ABORTED


def test_node_inputs_layer_under_run_overrides(workspace: Workspace) -> None:
    workspace.add_case(
        "ping",
        parameters=[
            {"name": "host", "type": "string", "default": "localhost"},
            {"name": "count", "type": "int", "default": 1},
        ],
    )
    workspace.add_suite(
        "Layered", [{"nodeId": "n1", "ref": "ping", "inputs": {"host": "suite", "count": 2}}]
    )
    runner = ScriptedRunner({})

    workspace.engine(runner).run(
        _suite_request("Layered", node_overrides={"n1": {"count": 5}})
    )

    assert runner.invocations[0].arguments == ("--host", "suite", "--count", "5")


def test_unknown_node_override_is_rejected_before_any_run(workspace: Workspace) -> None:
    workspace.add_case("a")
    workspace.add_suite("Strict", ["a"])

    with pytest.raises(RunRequestError) as excinfo:
        workspace.engine(ScriptedRunner({})).run(
            _suite_request("Strict", node_overrides={"zz": {"x": 1}})
        )

    assert excinfo.value.code == RUN_REQUEST_UNKNOWN_NODE_ID
    assert not workspace.runs.exists()


def test_suite_run_rejects_standalone_case_inputs(workspace: Workspace) -> None:
    workspace.add_case("a")
    workspace.add_suite("Strict", ["a"])

    with pytest.raises(RunRequestError) as excinfo:
        workspace.engine(ScriptedRunner({})).run(
            RunRequest(kind=RunTargetKind.SUITE, target="Strict@1", case_inputs={"x": 1})
        )

    assert excinfo.value.code == RUN_REQUEST_SUITE_CASE_INPUTS
    assert not workspace.runs.exists()


def test_case_run_rejects_node_overrides(workspace: Workspace) -> None:
    workspace.add_case("a")

    with pytest.raises(RunRequestError) as excinfo:
        workspace.engine(ScriptedRunner({})).run(
            RunRequest(kind=RunTargetKind.TEST_CASE, target="a@1", node_overrides={"n": {}})
        )

    assert excinfo.value.code == RUN_REQUEST_CASE_NODE_OVERRIDES


def test_admin_required_case_fails_before_any_folder_is_created(workspace: Workspace) -> None:
    workspace.add_case("admin", privilege="AdminRequired")
    workspace.add_suite("Admin", ["admin"])
    runner = ScriptedRunner({})

    with pytest.raises(RunRequestError) as excinfo:
        workspace.engine(runner).run(_suite_request("Admin"))

    assert excinfo.value.code == PRIVILEGE_REQUIRED
    assert runner.calls == []
    assert not workspace.runs.exists()


def test_admin_required_case_runs_when_elevated(workspace: Workspace) -> None:
    workspace.add_case("admin", privilege="AdminRequired")
    runner = ScriptedRunner({})

    outcome = workspace.engine(runner, elevated=True).run(
        RunRequest(kind=RunTargetKind.TEST_CASE, target="admin@1")
    )

    assert outcome.status is RunStatus.PASSED


def test_plan_runs_every_suite_and_aggregates(workspace: Workspace) -> None:
    for name in ("a", "b"):
        workspace.add_case(name)
    workspace.add_suite("First", ["a"])
    workspace.add_suite("Second", ["b"])
    workspace.add_plan("Release", ["First", "Second"])
    runner = ScriptedRunner({"a": [RunStatus.FAILED]})

    outcome = workspace.engine(runner).run(RunRequest(kind=RunTargetKind.PLAN, target="Release@1"))

    assert runner.calls == ["a", "b"]
    assert outcome.status is RunStatus.FAILED
    assert len(outcome.child_run_ids) == 2
    plan_result = _read_json(outcome.run_folder / "result.json")
    assert plan_result["runType"] == "TestPlan"
    assert plan_result["planId"] == "Release"
    assert plan_result["counts"]["Failed"] == 1
    assert plan_result["counts"]["Passed"] == 1
    for suite_run_id in outcome.child_run_ids:
        suite_result = _read_json(workspace.runs / suite_run_id / "result.json")
        assert suite_result["parentRunId"] == outcome.run_id
        assert suite_result["planId"] == "Release"
    assert [child["suiteId"] for child in _children(outcome.run_folder)] == ["First", "Second"]


def test_reporter_follows_a_standalone_case_run(workspace: Workspace) -> None:
    workspace.add_case("solo")
    reporter = RecordingReporter()

    outcome = workspace.engine(ScriptedRunner({}), reporter=reporter).run(
        RunRequest(kind=RunTargetKind.TEST_CASE, target="solo@1")
    )

    calls = reporter.for_run(outcome.run_id)
    assert [event for event, _ in calls] == ["planned", "started", "finished", "done"]
    run_type, planned = calls[0][1]
    assert run_type is RunType.TEST_CASE
    assert [node.node_id for node in planned] == ["solo@1"]
    finished = calls[2][1]
    assert finished.child_run_id == outcome.run_id
    assert finished.status is RunStatus.PASSED
    assert calls[3][1] is RunStatus.PASSED


def test_reporter_sees_every_suite_attempt(workspace: Workspace) -> None:
    workspace.add_case("flaky")
    workspace.add_case("steady")
    workspace.add_suite("Watched", ["flaky", "steady"], retryOnError=1)
    runner = ScriptedRunner({"flaky": [RunStatus.ERROR, RunStatus.PASSED]})
    reporter = RecordingReporter()

    outcome = workspace.engine(runner, reporter=reporter).run(_suite_request("Watched"))

    calls = reporter.for_run(outcome.run_id)
    run_type, planned = calls[0][1]
    assert run_type is RunType.TEST_SUITE
    assert [(node.node_id, node.ref) for node in planned] == [
        ("flaky", "flaky"),
        ("steady", "steady"),
    ]
    finished = [payload for event, payload in calls if event == "finished"]
    assert [(node.node_id, node.attempt, node.status) for node in finished] == [
        ("flaky", 1, RunStatus.ERROR),
        ("flaky", 2, RunStatus.PASSED),
        ("steady", 1, RunStatus.PASSED),
    ]
    assert [node.child_run_id for node in finished] == list(outcome.child_run_ids)
    assert [event for event, _ in calls].count("started") == 3
    assert calls[-1] == ("done", RunStatus.PASSED)


def test_reporter_tracks_plan_suites_as_nodes(workspace: Workspace) -> None:
    for name in ("a", "b"):
        workspace.add_case(name)
    workspace.add_suite("First", ["a"])
    workspace.add_suite("Second", ["b"])
    workspace.add_plan("Release", ["First", "Second"])
    reporter = RecordingReporter()

    outcome = workspace.engine(ScriptedRunner({"b": [RunStatus.FAILED]}), reporter=reporter).run(
        RunRequest(kind=RunTargetKind.PLAN, target="Release@1")
    )

    calls = reporter.for_run(outcome.run_id)
    run_type, planned = calls[0][1]
    assert run_type is RunType.TEST_PLAN
    assert [(node.node_id, node.node_type) for node in planned] == [
        ("First@1", RunType.TEST_SUITE),
        ("Second@1", RunType.TEST_SUITE),
    ]
    assert [payload for event, payload in calls if event == "started"] == ["First@1", "Second@1"]
    finished = [payload for event, payload in calls if event == "finished"]
    assert [node.status for node in finished] == [RunStatus.PASSED, RunStatus.FAILED]
    assert [node.child_run_id for node in finished] == list(outcome.child_run_ids)
    assert calls[-1] == ("done", RunStatus.FAILED)
    for suite_run_id in outcome.child_run_ids:
        assert reporter.for_run(suite_run_id)[0][0] == "planned"
        assert reporter.for_run(suite_run_id)[-1][0] == "done"
