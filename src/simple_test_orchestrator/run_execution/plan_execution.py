"""Plan execution: run each prepared suite in order under one group run."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from simple_test_orchestrator.manifest_discovery import DiscoveredTestPlan
from simple_test_orchestrator.process_execution import CancellationToken, RunStatus
from simple_test_orchestrator.run_storage import (
    ChildRunRecord,
    GroupResult,
    RunStore,
    RunType,
    ScopeIdentities,
    aggregate_status,
    count_statuses,
)

from .progress_reporting import (
    ExecutionReporter,
    NodeFinished,
    NullExecutionReporter,
    PlannedNode,
)
from .suite_execution import PreparedSuite, SuiteExecutor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedPlan:
    """A plan whose suites are fully prepared."""

    plan: DiscoveredTestPlan
    suites: tuple[PreparedSuite, ...]
    environment: Mapping[str, str]


class PlanExecutor:
    """Run a prepared plan; suites run sequentially and a failure does not stop the plan."""

    def __init__(
        self,
        suite_executor: SuiteExecutor,
        run_store: RunStore,
        reporter: ExecutionReporter | None = None,
    ) -> None:
        self._suite_executor = suite_executor
        self._run_store = run_store
        self._reporter = reporter or NullExecutionReporter()

    def execute(
        self,
        prepared: PreparedPlan,
        run_request: Mapping[str, Any],
        cancellation: CancellationToken | None = None,
    ) -> GroupResult:
        plan = prepared.plan
        secret_variables = tuple(
            dict.fromkeys(name for suite in prepared.suites for name in suite.secret_variables)
        )
        group = self._run_store.create_group_run(
            RunType.TEST_PLAN,
            plan.manifest.document,
            prepared.environment,
            run_request,
            secret_variables=secret_variables,
        )
        events = self._run_store.event_log(group)
        events.info(
            "Plan.Started",
            f"Starting {plan.identity}.",
            {"suites": [str(item.suite.identity) for item in prepared.suites]},
        )
        self._reporter.on_run_planned(
            group.run_id,
            RunType.TEST_PLAN,
            [
                PlannedNode(str(item.suite.identity), item.suite.identity, RunType.TEST_SUITE)
                for item in prepared.suites
            ],
        )
        start_time = self._run_store.now()
        statuses: list[RunStatus] = []
        child_run_ids: list[str] = []
        for suite in prepared.suites:
            if cancellation is not None and cancellation.is_cancelled:
                break
            self._reporter.on_node_started(group.run_id, str(suite.suite.identity))
            suite_result = self._suite_executor.execute(
                suite,
                _suite_run_request(run_request, suite),
                parent_run_id=group.run_id,
                cancellation=cancellation,
            )
            self._reporter.on_node_finished(
                group.run_id,
                NodeFinished(
                    node_id=str(suite.suite.identity),
                    status=suite_result.status,
                    start_time=suite_result.start_time,
                    end_time=suite_result.end_time,
                    child_run_id=suite_result.run_id,
                    message=suite_result.message,
                ),
            )
            statuses.append(suite_result.status)
            child_run_ids.append(suite_result.run_id)
            self._run_store.append_child(
                group,
                ChildRunRecord(
                    run_id=suite_result.run_id,
                    status=suite_result.status,
                    suite_identity=suite.suite.identity,
                ),
            )
            logger.info(
                "Suite %s finished with %s", suite.suite.identity, suite_result.status.value
            )

        skipped = len(prepared.suites) - len(statuses)
        status = aggregate_status(statuses)
        if skipped:
            status = RunStatus.ABORTED
        result = GroupResult(
            run_id=group.run_id,
            run_type=RunType.TEST_PLAN,
            scope=ScopeIdentities(plan=plan.identity),
            status=status,
            start_time=start_time,
            end_time=self._run_store.now(),
            counts=count_statuses(statuses, skipped=skipped),
            child_run_ids=tuple(child_run_ids),
        )
        events.info("Plan.Completed", f"Plan finished with {status.value}.", dict(result.counts))
        self._run_store.write_group_result(group, result)
        self._reporter.on_run_finished(group.run_id, status)
        return result


def _suite_run_request(run_request: Mapping[str, Any], suite: PreparedSuite) -> dict[str, Any]:
    document = dict(run_request)
    document["suite"] = str(suite.suite.identity)
    return document
