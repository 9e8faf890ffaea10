"""Suite execution: bounded parallel node scheduling with retry and stop rules."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from simple_test_orchestrator.manifest_discovery import DiscoveredTestSuite
from simple_test_orchestrator.manifest_model import Identity, SuiteControls, TimeoutPolicy
from simple_test_orchestrator.process_execution import CancellationToken, RunStatus
from simple_test_orchestrator.run_storage import (
    ChildRunRecord,
    GroupResult,
    GroupRunContext,
    RunStore,
    RunType,
    ScopeIdentities,
    TestCaseResult,
    aggregate_status,
    count_statuses,
)

from .case_execution import PRIVILEGE_NOT_ELEVATED, CaseExecutor, PreparedCase, progress_node_id
from .progress_reporting import (
    ExecutionReporter,
    NodeFinished,
    NullExecutionReporter,
    PlannedNode,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedSuite:
    """A suite whose nodes are bound and whose environment is resolved."""

    suite: DiscoveredTestSuite
    nodes: tuple[PreparedCase, ...]
    environment: Mapping[str, str]
    plan_identity: Identity | None = None
    privilege_warning: bool = False

    @property
    def secret_variables(self) -> tuple[str, ...]:
        names: dict[str, None] = {}
        for node in self.nodes:
            names.update(dict.fromkeys(node.parameters.secret_variables))
        return tuple(names)


@dataclass
class _SuiteProgress:
    """Shared scheduler state; guarded by ``lock``."""

    pending: deque[PreparedCase]
    lock: threading.Lock = field(default_factory=threading.Lock)
    stop: threading.Event = field(default_factory=threading.Event)
    final_statuses: list[RunStatus] = field(default_factory=list)
    child_run_ids: list[str] = field(default_factory=list)
    stop_reason: str | None = None


class SuiteExecutor:
    """Run a prepared suite inside its own group run folder."""

    def __init__(
        self,
        case_executor: CaseExecutor,
        run_store: RunStore,
        reporter: ExecutionReporter | None = None,
    ) -> None:
        self._case_executor = case_executor
        self._run_store = run_store
        self._reporter = reporter or NullExecutionReporter()

    def execute(
        self,
        prepared: PreparedSuite,
        run_request: Mapping[str, Any],
        *,
        parent_run_id: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> GroupResult:
        """Schedule ``repeat`` x nodes across ``maxParallel`` workers.

        Nodes that never start because the suite stopped early are counted
        as skipped.
        """
        manifest = prepared.suite.manifest
        controls = manifest.controls
        group = self._run_store.create_group_run(
            RunType.TEST_SUITE,
            manifest.document,
            prepared.environment,
            run_request,
            controls=controls.to_document(),
            secret_variables=prepared.secret_variables,
        )
        events = self._run_store.event_log(group)
        events.info(
            "Suite.Started",
            f"Starting {prepared.suite.identity}.",
            {"nodes": len(prepared.nodes), **controls.to_document()},
        )
        if prepared.privilege_warning:
            events.warning(
                PRIVILEGE_NOT_ELEVATED,
                f"{prepared.suite.identity} prefers elevation; running without it.",
            )
        start_time = self._run_store.now()
        progress = _SuiteProgress(
            pending=deque(node for _ in range(controls.repeat) for node in prepared.nodes)
        )
        refs = {node.node_id: node.ref for node in manifest.nodes}
        self._reporter.on_run_planned(
            group.run_id,
            RunType.TEST_SUITE,
            [
                PlannedNode(
                    progress_node_id(node),
                    node.case.identity,
                    RunType.TEST_CASE,
                    ref=refs.get(node.node_id),
                )
                for node in progress.pending
            ],
        )
        workers = max(1, min(controls.max_parallel, len(progress.pending)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="suite-node") as pool:
            futures = [
                pool.submit(self._work, progress, group, controls, cancellation)
                for _ in range(workers)
            ]
            for future in futures:
                future.result()

        skipped = len(progress.pending)
        status = aggregate_status(progress.final_statuses)
        if skipped and _cancelled(cancellation):
            status = RunStatus.ABORTED
        if skipped:
            events.info(
                "Suite.NodesSkipped",
                f"{skipped} node run(s) were not started.",
                {"skipped": skipped, "reason": progress.stop_reason},
            )
        result = GroupResult(
            run_id=group.run_id,
            run_type=RunType.TEST_SUITE,
            scope=ScopeIdentities(suite=prepared.suite.identity, plan=prepared.plan_identity),
            status=status,
            start_time=start_time,
            end_time=self._run_store.now(),
            counts=count_statuses(progress.final_statuses, skipped=skipped),
            child_run_ids=tuple(progress.child_run_ids),
            parent_run_id=parent_run_id,
            message=progress.stop_reason,
        )
        events.info("Suite.Completed", f"Suite finished with {status.value}.", dict(result.counts))
        self._run_store.write_group_result(group, result)
        self._reporter.on_run_finished(group.run_id, status)
        return result

    def _work(
        self,
        progress: _SuiteProgress,
        group: GroupRunContext,
        controls: SuiteControls,
        cancellation: CancellationToken | None,
    ) -> None:
        while True:
            with progress.lock:
                if progress.stop.is_set() or _cancelled(cancellation) or not progress.pending:
                    return
                node = progress.pending.popleft()
            result = self._run_node(node, progress, group, controls, cancellation)
            with progress.lock:
                progress.final_statuses.append(result.status)
                reason = _stop_reason(result, controls)
                if reason is not None and not progress.stop.is_set():
                    progress.stop_reason = reason
                    progress.stop.set()
                    logger.info("Suite %s stops scheduling: %s", group.run_id, reason)

    def _run_node(  # pylint: disable=too-many-arguments
        self,
        node: PreparedCase,
        progress: _SuiteProgress,
        group: GroupRunContext,
        controls: SuiteControls,
        cancellation: CancellationToken | None,
    ) -> TestCaseResult:
        attempt = 1
        while True:
            self._reporter.on_node_started(group.run_id, progress_node_id(node))
            result = self._case_executor.execute(
                node, attempt=attempt, parent_run_id=group.run_id, cancellation=cancellation
            )
            self._record_child(group, node, result)
            self._reporter.on_node_finished(
                group.run_id,
                NodeFinished(
                    node_id=progress_node_id(node),
                    status=result.status,
                    start_time=result.start_time,
                    end_time=result.end_time,
                    child_run_id=result.run_id,
                    attempt=result.attempt,
                    message=result.error.message if result.error is not None else None,
                ),
            )
            with progress.lock:
                progress.child_run_ids.append(result.run_id)
            retry = (
                result.status is RunStatus.ERROR
                and attempt <= controls.retry_on_error
                and not _cancelled(cancellation)
            )
            if not retry:
                return result
            logger.info("Retrying node %s after Error (attempt %d)", node.node_id, attempt + 1)
            attempt += 1

    def _record_child(
        self, group: GroupRunContext, node: PreparedCase, result: TestCaseResult
    ) -> None:
        self._run_store.append_child(
            group,
            ChildRunRecord(
                run_id=result.run_id,
                status=result.status,
                test_identity=node.case.identity,
                node_id=node.node_id,
                attempt=result.attempt,
            ),
        )


def _cancelled(cancellation: CancellationToken | None) -> bool:
    return cancellation is not None and cancellation.is_cancelled


def _stop_reason(result: TestCaseResult, controls: SuiteControls) -> str | None:
    if result.status is RunStatus.PASSED:
        return None
    if result.status is RunStatus.ABORTED:
        return "cancelled"
    abort_on_timeout = controls.timeout_policy is TimeoutPolicy.ABORT_ON_TIMEOUT
    if result.status is RunStatus.TIMEOUT and abort_on_timeout:
        return f"node {result.node_id} timed out under {controls.timeout_policy.value}"
    if not controls.continue_on_failure:
        return f"node {result.node_id} ended {result.status.value} with continueOnFailure=false"
    return None
