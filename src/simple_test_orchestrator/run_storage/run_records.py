"""Run storage entities: contexts, result records and index entries."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from simple_test_orchestrator.manifest_discovery import RESULT_SCHEMA_VERSION
from simple_test_orchestrator.manifest_model import Identity
from simple_test_orchestrator.process_execution import ErrorInfo, RunStatus

SKIPPED_STATUS = "Skipped"

STATUS_PRECEDENCE = (
    RunStatus.ABORTED,
    RunStatus.ERROR,
    RunStatus.TIMEOUT,
    RunStatus.FAILED,
    RunStatus.PASSED,
)


class RunType(str, Enum):
    """Kind of entity a run folder belongs to."""

    TEST_CASE = "TestCase"
    TEST_SUITE = "TestSuite"
    TEST_PLAN = "TestPlan"


@dataclass(frozen=True)
class RunnerMetadata:
    """Engine and interpreter facts recorded with every case result."""

    engine_version: str
    interpreter: str
    interpreter_version: str | None
    host_name: str
    command_line: str | None = None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "engineVersion": self.engine_version,
            "interpreter": self.interpreter,
            "interpreterVersion": self.interpreter_version,
            "hostName": self.host_name,
        }
        if self.command_line is not None:
            document["commandLine"] = self.command_line
        return document


@dataclass(frozen=True)
class RunContext:  # pylint: disable=too-many-instance-attributes
    """Paths owned by one test case run folder."""

    run_id: str
    run_folder: Path
    manifest_path: Path
    params_path: Path
    env_path: Path
    events_path: Path
    stdout_path: Path
    stderr_path: Path
    result_path: Path
    artifacts_path: Path

    @property
    def report_path(self) -> Path:
        return self.artifacts_path / "report.json"


@dataclass(frozen=True)
class GroupRunContext:  # pylint: disable=too-many-instance-attributes
    """Paths owned by one suite or plan run folder."""

    run_id: str
    run_type: RunType
    run_folder: Path
    manifest_path: Path
    controls_path: Path
    environment_path: Path
    run_request_path: Path
    children_path: Path
    events_path: Path
    result_path: Path


@dataclass(frozen=True)
class ScopeIdentities:
    """Identities of the case, suite and plan a run belongs to."""

    test: Identity | None = None
    suite: Identity | None = None
    plan: Identity | None = None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {}
        for prefix, identity in (("test", self.test), ("suite", self.suite), ("plan", self.plan)):
            if identity is not None:
                document[f"{prefix}Id"] = identity.entity_id
                document[f"{prefix}Version"] = identity.version
        return document

    @staticmethod
    def from_document(document: Mapping[str, Any]) -> ScopeIdentities:
        def _identity(prefix: str) -> Identity | None:
            entity_id = document.get(f"{prefix}Id")
            version = document.get(f"{prefix}Version")
            if not entity_id or not version:
                return None
            return Identity(str(entity_id), str(version))

        return ScopeIdentities(
            test=_identity("test"), suite=_identity("suite"), plan=_identity("plan")
        )


@dataclass(frozen=True)
class TestCaseResult:  # pylint: disable=too-many-instance-attributes
    """Result record of one executed test case."""

    __test__ = False

    run_id: str
    scope: ScopeIdentities
    status: RunStatus
    start_time: datetime
    end_time: datetime
    runner: RunnerMetadata
    effective_inputs: Mapping[str, Any] = field(default_factory=dict)
    exit_code: int | None = None
    error: ErrorInfo | None = None
    node_id: str | None = None
    attempt: int = 1
    parent_run_id: str | None = None
    report: Any = None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "schemaVersion": RESULT_SCHEMA_VERSION,
            "runType": RunType.TEST_CASE.value,
            "runId": self.run_id,
            "nodeId": self.node_id,
            **self.scope.to_document(),
            "status": self.status.value,
            "startTime": format_timestamp(self.start_time),
            "endTime": format_timestamp(self.end_time),
            "exitCode": self.exit_code,
            "attempt": self.attempt,
            "parentRunId": self.parent_run_id,
            "effectiveInputs": dict(self.effective_inputs),
            "error": self.error.to_document() if self.error else None,
            "runner": self.runner.to_document(),
        }
        if self.report is not None:
            document["report"] = self.report
        return document

    def to_index_entry(self) -> IndexEntry:
        return IndexEntry(
            run_id=self.run_id,
            run_type=RunType.TEST_CASE,
            scope=self.scope,
            status=self.status.value,
            start_time=format_timestamp(self.start_time),
            end_time=format_timestamp(self.end_time),
            node_id=self.node_id,
            attempt=self.attempt,
            parent_run_id=self.parent_run_id,
        )


@dataclass(frozen=True)
class ChildRunRecord:
    """One line of a group run's ``children.jsonl``."""

    run_id: str
    status: RunStatus
    test_identity: Identity | None = None
    node_id: str | None = None
    attempt: int = 1
    suite_identity: Identity | None = None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {"runId": self.run_id}
        if self.node_id is not None:
            document["nodeId"] = self.node_id
        scope = ScopeIdentities(test=self.test_identity, suite=self.suite_identity)
        document.update(scope.to_document())
        document["attempt"] = self.attempt
        document["status"] = self.status.value
        return document


@dataclass(frozen=True)
class GroupResult:  # pylint: disable=too-many-instance-attributes
    """Aggregate of a suite or plan run; child semantics stay case-level."""

    run_id: str
    run_type: RunType
    scope: ScopeIdentities
    status: RunStatus
    start_time: datetime
    end_time: datetime
    counts: Mapping[str, int]
    child_run_ids: tuple[str, ...] = ()
    parent_run_id: str | None = None
    message: str | None = None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "schemaVersion": RESULT_SCHEMA_VERSION,
            "runType": self.run_type.value,
            "runId": self.run_id,
            **self.scope.to_document(),
            "status": self.status.value,
            "startTime": format_timestamp(self.start_time),
            "endTime": format_timestamp(self.end_time),
            "counts": dict(self.counts),
            "childRunIds": list(self.child_run_ids),
            "parentRunId": self.parent_run_id,
        }
        if self.message:
            document["message"] = self.message
        return document

    def to_index_entry(self) -> IndexEntry:
        return IndexEntry(
            run_id=self.run_id,
            run_type=self.run_type,
            scope=self.scope,
            status=self.status.value,
            start_time=format_timestamp(self.start_time),
            end_time=format_timestamp(self.end_time),
            parent_run_id=self.parent_run_id,
        )


@dataclass(frozen=True)
class IndexEntry:  # pylint: disable=too-many-instance-attributes
    """One line of the shared run index."""

    run_id: str
    run_type: RunType
    scope: ScopeIdentities
    status: str
    start_time: str
    end_time: str
    node_id: str | None = None
    attempt: int | None = None
    parent_run_id: str | None = None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "runId": self.run_id,
            "runType": self.run_type.value,
            **self.scope.to_document(),
            "status": self.status,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }
        if self.node_id is not None:
            document["nodeId"] = self.node_id
        if self.attempt is not None:
            document["attempt"] = self.attempt
        if self.parent_run_id is not None:
            document["parentRunId"] = self.parent_run_id
        return document

    @staticmethod
    def from_document(document: Mapping[str, Any]) -> IndexEntry:
        """Rebuild an entry from its JSON object; raises on missing keys."""
        attempt = document.get("attempt")
        return IndexEntry(
            run_id=str(document["runId"]),
            run_type=RunType(document["runType"]),
            scope=ScopeIdentities.from_document(document),
            status=str(document["status"]),
            start_time=str(document["startTime"]),
            end_time=str(document["endTime"]),
            node_id=document.get("nodeId"),
            attempt=int(attempt) if attempt is not None else None,
            parent_run_id=document.get("parentRunId"),
        )


def aggregate_status(statuses: Iterable[RunStatus]) -> RunStatus:
    """Return the most severe status; an empty group counts as passed."""
    present = set(statuses)
    for status in STATUS_PRECEDENCE:
        if status in present:
            return status
    return RunStatus.PASSED


def count_statuses(statuses: Iterable[RunStatus], skipped: int = 0) -> dict[str, int]:
    counts = {status.value: 0 for status in RunStatus}
    total = 0
    for status in statuses:
        counts[status.value] += 1
        total += 1
    counts[SKIPPED_STATUS] = skipped
    counts["Total"] = total + skipped
    return counts


def format_timestamp(moment: datetime) -> str:
    return moment.isoformat()
