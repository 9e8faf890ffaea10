"""Engine facade: discovery plus run dispatch for cases, suites and plans."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any, TypeVar

from simple_test_orchestrator.configuration import Configuration
from simple_test_orchestrator.environment_resolution import (
    BaseEnvironmentProvider,
    EnvironmentResolver,
)
from simple_test_orchestrator.manifest_discovery import (
    DiscoveredTestPlan,
    DiscoveredTestSuite,
    DiscoveryResult,
    discover_manifests,
)
from simple_test_orchestrator.manifest_model import Identity, IdentityFormatError, PrivilegeLevel
from simple_test_orchestrator.parameter_binding import ParameterBindingError, bind_parameters
from simple_test_orchestrator.process_execution import (
    CancellationToken,
    ScriptProcessRunner,
    default_terminator,
)
from simple_test_orchestrator.run_storage import RunStore, ScopeIdentities

from .case_execution import CaseExecutor, ExecutionSettings, PreparedCase, ScriptRunner
from .plan_execution import PlanExecutor, PreparedPlan
from .progress_reporting import ExecutionReporter
from .privilege import (
    PrivilegeChecker,
    ProcessPrivilegeChecker,
    enforce_privilege,
    required_privilege,
)
from .run_contracts import (
    RUN_REQUEST_CASE_NODE_OVERRIDES,
    RUN_REQUEST_IDENTITY_INVALID_FORMAT,
    RUN_REQUEST_IDENTITY_NOT_FOUND,
    RUN_REQUEST_PLAN_INPUT_OVERRIDE,
    RUN_REQUEST_SUITE_CASE_INPUTS,
    RUN_REQUEST_UNKNOWN_NODE_ID,
    RunOutcome,
    RunRequest,
    RunRequestError,
    RunTargetKind,
)
from .suite_execution import PreparedSuite, SuiteExecutor

logger = logging.getLogger(__name__)

EntryT = TypeVar("EntryT")


def _utc_now() -> datetime:
    return datetime.now(UTC)


class TestOrchestrationEngine:  # pylint: disable=too-many-instance-attributes
    """Discover manifests and execute run requests against them.

    Pre-run problems (discovery, unknown targets, binding, environment keys,
    missing privilege) raise before any run folder is created. Once a run
    starts, every outcome is reported through the returned ``RunOutcome``.
    """

    __test__ = False

    def __init__(  # pylint: disable=too-many-arguments
        self,
        configuration: Configuration,
        *,
        environment_provider: BaseEnvironmentProvider | None = None,
        script_runner: ScriptRunner | None = None,
        privilege_checker: PrivilegeChecker | None = None,
        reporter: ExecutionReporter | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        runner_settings = configuration.runner
        self._configuration = configuration
        self._environment = EnvironmentResolver(environment_provider)
        self._privilege_checker = privilege_checker or ProcessPrivilegeChecker()
        self._run_store = RunStore(configuration.runs_root, clock=clock)
        script_runner = script_runner or ScriptProcessRunner(
            default_terminator(runner_settings.termination_grace_seconds),
            poll_interval_seconds=runner_settings.poll_interval_seconds,
            clock=clock,
        )
        self._case_executor = CaseExecutor(
            self._run_store,
            script_runner,
            ExecutionSettings(
                interpreter=runner_settings.interpreter,
                default_timeout_seconds=runner_settings.default_timeout_seconds,
                module_search_path=runner_settings.module_search_path,
            ),
            reporter,
        )
        self._suite_executor = SuiteExecutor(self._case_executor, self._run_store, reporter)
        self._plan_executor = PlanExecutor(self._suite_executor, self._run_store, reporter)
        self._discovery: DiscoveryResult | None = None

    @property
    def run_store(self) -> RunStore:
        return self._run_store

    def discover(self) -> DiscoveryResult:
        """Scan the configured roots; raises ``DiscoveryError`` on any violation."""
        roots = self._configuration.roots
        self._discovery = discover_manifests(
            roots.test_cases,
            roots.test_suites,
            roots.test_plans,
            script_name=self._configuration.runner.script_name,
        )
        return self._discovery

    def run(
        self, request: RunRequest, cancellation: CancellationToken | None = None
    ) -> RunOutcome:
        """Execute the requested target and return its run id and status."""
        discovery = self._discovery or self.discover()
        if request.kind is RunTargetKind.TEST_CASE:
            return self._run_test_case(discovery, request, cancellation)
        if request.kind is RunTargetKind.SUITE:
            return self._run_suite(discovery, request, cancellation)
        return self._run_plan(discovery, request, cancellation)

    def _run_test_case(
        self,
        discovery: DiscoveryResult,
        request: RunRequest,
        cancellation: CancellationToken | None,
    ) -> RunOutcome:
        case = _lookup(discovery.test_cases, request.target, "Test case")
        if request.node_overrides:
            raise RunRequestError(
                RUN_REQUEST_CASE_NODE_OVERRIDES,
                "nodeOverrides only apply to suite runs.",
                data={"nodeIds": sorted(request.node_overrides)},
            )
        warning = enforce_privilege(
            case.manifest.privilege, self._privilege_checker, str(case.identity)
        )
        environment = self._environment.for_test_case(request.environment_overrides)
        parameters = bind_parameters(
            case.manifest.parameters, request.case_inputs, environment=environment
        )
        result = self._case_executor.execute(
            PreparedCase(
                case=case,
                parameters=parameters,
                environment=environment,
                scope=ScopeIdentities(test=case.identity),
                privilege_warning=warning,
            ),
            cancellation=cancellation,
        )
        return RunOutcome(
            run_id=result.run_id,
            kind=request.kind,
            status=result.status,
            run_folder=self._run_store.runs_root / result.run_id,
        )

    def _run_suite(
        self,
        discovery: DiscoveryResult,
        request: RunRequest,
        cancellation: CancellationToken | None,
    ) -> RunOutcome:
        suite = _lookup(discovery.test_suites, request.target, "Suite")
        if request.case_inputs:
            raise RunRequestError(
                RUN_REQUEST_SUITE_CASE_INPUTS,
                "Suite runs take per-node inputs through nodeOverrides.",
                data={"inputs": sorted(request.case_inputs)},
            )
        plan: DiscoveredTestPlan | None = None
        if request.plan_context:
            plan = _lookup(discovery.test_plans, request.plan_context, "Plan")
        environment = self._environment.for_suite(
            suite.manifest,
            request.environment_overrides,
            plan=plan.manifest if plan is not None else None,
        )
        prepared = self._prepare_suite(
            discovery,
            suite,
            environment,
            request.node_overrides,
            plan.identity if plan is not None else None,
        )
        result = self._suite_executor.execute(
            prepared, request.to_document(), cancellation=cancellation
        )
        return RunOutcome(
            run_id=result.run_id,
            kind=request.kind,
            status=result.status,
            run_folder=self._run_store.runs_root / result.run_id,
            child_run_ids=result.child_run_ids,
        )

    def _run_plan(
        self,
        discovery: DiscoveryResult,
        request: RunRequest,
        cancellation: CancellationToken | None,
    ) -> RunOutcome:
        plan = _lookup(discovery.test_plans, request.target, "Plan")
        if request.case_inputs or request.node_overrides:
            raise RunRequestError(
                RUN_REQUEST_PLAN_INPUT_OVERRIDE,
                "Plan runs do not accept input overrides.",
                data={"plan": str(plan.identity)},
            )
        suites = []
        for suite_identity in plan.suite_identities:
            suite = discovery.test_suites[suite_identity]
            environment = self._environment.for_plan(
                plan.manifest, suite.manifest, request.environment_overrides
            )
            suites.append(self._prepare_suite(discovery, suite, environment, {}, plan.identity))
        prepared = PreparedPlan(
            plan=plan,
            suites=tuple(suites),
            environment=self._environment.for_plan(
                plan.manifest, None, request.environment_overrides
            ),
        )
        result = self._plan_executor.execute(prepared, request.to_document(), cancellation)
        return RunOutcome(
            run_id=result.run_id,
            kind=request.kind,
            status=result.status,
            run_folder=self._run_store.runs_root / result.run_id,
            child_run_ids=result.child_run_ids,
        )

    def _prepare_suite(  # pylint: disable=too-many-arguments
        self,
        discovery: DiscoveryResult,
        suite: DiscoveredTestSuite,
        environment: Mapping[str, str],
        node_overrides: Mapping[str, Mapping[str, Any]],
        plan_identity: Identity | None,
    ) -> PreparedSuite:
        manifest = suite.manifest
        unknown = sorted(set(node_overrides) - {node.node_id for node in manifest.nodes})
        if unknown:
            raise RunRequestError(
                RUN_REQUEST_UNKNOWN_NODE_ID,
                f"nodeOverrides name unknown node id(s) of {suite.identity}: {', '.join(unknown)}.",
                data={"nodeIds": unknown},
            )
        cases = {node.node_id: discovery.node_case(suite, node.node_id) for node in manifest.nodes}
        level = required_privilege(case.manifest for case in cases.values())
        warning = enforce_privilege(level, self._privilege_checker, str(suite.identity))

        nodes = []
        for node in manifest.nodes:
            case = cases[node.node_id]
            supplied = {**node.inputs, **node_overrides.get(node.node_id, {})}
            try:
                parameters = bind_parameters(
                    case.manifest.parameters, supplied, environment=environment
                )
            except ParameterBindingError as exc:
                raise ParameterBindingError(
                    exc.code,
                    f"Node '{node.node_id}' of {suite.identity}: {exc.message}",
                    parameter=exc.parameter,
                    data={**exc.data, "nodeId": node.node_id},
                ) from exc
            nodes.append(
                PreparedCase(
                    case=case,
                    parameters=parameters,
                    environment=environment,
                    scope=ScopeIdentities(
                        test=case.identity, suite=suite.identity, plan=plan_identity
                    ),
                    node_id=node.node_id,
                    working_dir=manifest.environment.working_dir,
                    runner_hints=manifest.environment.runner,
                    privilege_warning=(
                        warning and case.manifest.privilege is PrivilegeLevel.ADMIN_PREFERRED
                    ),
                )
            )
        logger.debug("Prepared %d node(s) of %s", len(nodes), suite.identity)
        return PreparedSuite(
            suite=suite,
            nodes=tuple(nodes),
            environment=environment,
            plan_identity=plan_identity,
            privilege_warning=warning,
        )


def _lookup(entries: Mapping[Identity, EntryT], target: str, label: str) -> EntryT:
    try:
        identity = Identity.parse(target)
    except IdentityFormatError as exc:
        raise RunRequestError(
            RUN_REQUEST_IDENTITY_INVALID_FORMAT, str(exc), data={"target": target}
        ) from exc
    entry = entries.get(identity)
    if entry is None:
        raise RunRequestError(
            RUN_REQUEST_IDENTITY_NOT_FOUND,
            f"{label} '{identity}' was not discovered.",
            data={"target": target},
        )
    return entry
