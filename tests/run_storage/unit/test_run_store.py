"""Run store tests."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from simple_test_orchestrator.manifest_model import Identity, ParameterDefinition
from simple_test_orchestrator.parameter_binding import bind_parameters
from simple_test_orchestrator.process_execution import RunStatus
from simple_test_orchestrator.run_storage import (
    ChildRunRecord,
    GroupResult,
    RunnerMetadata,
    RunStore,
    RunType,
    ScopeIdentities,
    TestCaseResult,
    aggregate_status,
    count_statuses,
    read_events,
    read_run_index,
    redact_environment,
)

MOMENT = datetime(2024, 5, 1, 12, 30, 0, tzinfo=UTC)


def _store(tmp_path: Path) -> RunStore:
    return RunStore(tmp_path / "runs", clock=lambda: MOMENT)


def _bound():
    return bind_parameters(
        (
            ParameterDefinition(name="host", type_name="string"),
            ParameterDefinition(name="token", type_name="string"),
        ),
        {"host": "lab", "token": {"$env": "TOKEN", "secret": True}},
        environment={"TOKEN": "s3cr3t"},
    )


def test_create_run_writes_snapshots_before_execution(tmp_path: Path) -> None:
    store = _store(tmp_path)

    context = store.create_run({"id": "Ping", "version": "1"}, _bound(), {"TARGET": "lab"})

    assert context.run_id.startswith("R-20240501-123000")
    assert context.run_folder == tmp_path / "runs" / context.run_id
    assert json.loads(context.manifest_path.read_text(encoding="utf-8")) == {
        "id": "Ping",
        "version": "1",
    }
    assert json.loads(context.params_path.read_text(encoding="utf-8")) == {
        "host": "lab",
        "token": "***",
    }
    assert json.loads(context.env_path.read_text(encoding="utf-8")) == {"TARGET": "lab"}
    assert context.artifacts_path.is_dir()
    assert context.report_path == context.artifacts_path / "report.json"
    assert not context.result_path.exists()


def test_run_folders_are_unique_for_the_same_instant(tmp_path: Path) -> None:
    store = _store(tmp_path)

    run_ids = {store.create_run({}, _bound(), {}).run_id for _ in range(20)}

    assert len(run_ids) == 20


def test_write_result_persists_record_and_appends_index(tmp_path: Path) -> None:
    store = _store(tmp_path)
    bound = _bound()
    context = store.create_run({}, bound, {})
    result = TestCaseResult(
        run_id=context.run_id,
        scope=ScopeIdentities(test=Identity("Ping", "1"), suite=Identity("Nightly", "2")),
        status=RunStatus.FAILED,
        start_time=MOMENT,
        end_time=MOMENT,
        runner=RunnerMetadata(
            engine_version="0.1.0",
            interpreter="/usr/bin/python3",
            interpreter_version="Python 3.12.0",
            host_name="lab-host",
            command_line="python run.py --token ***",
        ),
        effective_inputs=bound.snapshot(),
        exit_code=1,
        node_id="ping",
        attempt=2,
        parent_run_id="G-parent",
        report={"checks": 3},
    )

    store.write_result(context, result)

    document = json.loads(context.result_path.read_text(encoding="utf-8"))
    assert document["schemaVersion"] == "1.0"
    assert document["runType"] == "TestCase"
    assert document["testId"] == "Ping"
    assert document["suiteVersion"] == "2"
    assert document["status"] == "Failed"
    assert document["exitCode"] == 1
    assert document["effectiveInputs"] == {"host": "lab", "token": "***"}
    assert document["error"] is None
    assert document["report"] == {"checks": 3}
    assert document["runner"]["hostName"] == "lab-host"

    entries = list(read_run_index(store.runs_root))
    assert len(entries) == 1
    entry = entries[0]
    assert entry.run_id == context.run_id
    assert entry.run_type is RunType.TEST_CASE
    assert entry.scope.test == Identity("Ping", "1")
    assert entry.status == "Failed"
    assert entry.node_id == "ping"
    assert entry.attempt == 2
    assert entry.parent_run_id == "G-parent"


def test_group_run_layout_and_result(tmp_path: Path) -> None:
    store = _store(tmp_path)
    group = store.create_group_run(
        RunType.TEST_SUITE,
        {"id": "Nightly"},
        {"TARGET": "lab"},
        {"suite": "Nightly@2"},
        controls={"repeat": 1},
    )
    store.append_child(
        group,
        ChildRunRecord(
            run_id="R-1", status=RunStatus.PASSED, test_identity=Identity("Ping", "1"), node_id="a"
        ),
    )
    events = store.event_log(group)
    events.info("Suite.Started", "Starting.", {"nodes": 1})
    result = GroupResult(
        run_id=group.run_id,
        run_type=RunType.TEST_SUITE,
        scope=ScopeIdentities(suite=Identity("Nightly", "2")),
        status=RunStatus.PASSED,
        start_time=MOMENT,
        end_time=MOMENT,
        counts=count_statuses([RunStatus.PASSED]),
        child_run_ids=("R-1",),
    )

    store.write_group_result(group, result)

    assert group.run_id.startswith("G-")
    assert json.loads(group.controls_path.read_text(encoding="utf-8")) == {"repeat": 1}
    assert json.loads(group.environment_path.read_text(encoding="utf-8")) == {"TARGET": "lab"}
    assert json.loads(group.run_request_path.read_text(encoding="utf-8")) == {
        "suite": "Nightly@2"
    }
    children = [json.loads(line) for line in group.children_path.read_text().splitlines()]
    assert children == [
        {
            "runId": "R-1",
            "nodeId": "a",
            "testId": "Ping",
            "testVersion": "1",
            "attempt": 1,
            "status": "Passed",
        }
    ]
    assert read_events(group.events_path)[0]["code"] == "Suite.Started"
    document = json.loads(group.result_path.read_text(encoding="utf-8"))
    assert document["runType"] == "TestSuite"
    assert document["counts"]["Passed"] == 1
    assert document["counts"]["Skipped"] == 0
    assert document["childRunIds"] == ["R-1"]
    assert [entry.run_type for entry in read_run_index(store.runs_root)] == [RunType.TEST_SUITE]


def test_aggregate_status_uses_severity_precedence() -> None:
    assert aggregate_status([]) is RunStatus.PASSED
    assert aggregate_status([RunStatus.PASSED, RunStatus.FAILED]) is RunStatus.FAILED
    assert aggregate_status([RunStatus.FAILED, RunStatus.TIMEOUT]) is RunStatus.TIMEOUT
    assert aggregate_status([RunStatus.TIMEOUT, RunStatus.ERROR]) is RunStatus.ERROR
    assert aggregate_status([RunStatus.ERROR, RunStatus.ABORTED]) is RunStatus.ABORTED


def test_count_statuses_includes_skipped_and_total() -> None:
    counts = count_statuses([RunStatus.PASSED, RunStatus.FAILED, RunStatus.PASSED], skipped=2)

    assert counts == {
        "Passed": 2,
        "Failed": 1,
        "Error": 0,
        "Timeout": 0,
        "Aborted": 0,
        "Skipped": 2,
        "Total": 5,
    }


def test_env_snapshot_masks_variables_read_as_secrets(tmp_path: Path) -> None:
    store = _store(tmp_path)

    context = store.create_run({}, _bound(), {"Token": "s3cr3t", "TARGET": "lab"})

    snapshot = context.env_path.read_text(encoding="utf-8")
    assert json.loads(snapshot) == {"Token": "***", "TARGET": "lab"}
    assert "s3cr3t" not in snapshot


def test_group_environment_snapshot_masks_secret_variables(tmp_path: Path) -> None:
    group = _store(tmp_path).create_group_run(
        RunType.TEST_SUITE,
        {},
        {"TOKEN": "s3cr3t", "TARGET": "lab"},
        {},
        secret_variables=("token",),
    )

    assert json.loads(group.environment_path.read_text(encoding="utf-8")) == {
        "TOKEN": "***",
        "TARGET": "lab",
    }


def test_redact_environment_leaves_environment_untouched_without_secrets() -> None:
    assert redact_environment({"A": "1"}, ()) == {"A": "1"}
