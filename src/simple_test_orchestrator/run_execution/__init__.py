"""Run execution exports."""

from .case_execution import (
    REPORT_INVALID,
    REPORT_MISSING,
    SECRET_ON_COMMAND_LINE,
    WORKING_DIR_CONTAINMENT_FAILED,
    CaseExecutor,
    ExecutionSettings,
    PreparedCase,
    ScriptRunner,
)
from .engine import TestOrchestrationEngine
from .plan_execution import PlanExecutor, PreparedPlan
from .progress_reporting import (
    ExecutionReporter,
    NodeFinished,
    NullExecutionReporter,
    PlannedNode,
)
from .privilege import (
    FixedPrivilegeChecker,
    PrivilegeChecker,
    ProcessPrivilegeChecker,
    enforce_privilege,
    required_privilege,
)
from .run_contracts import (
    PRIVILEGE_REQUIRED,
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
from .runtime_metadata import engine_version, host_name, interpreter_version, runner_metadata
from .suite_execution import PreparedSuite, SuiteExecutor

__all__ = [
    "CaseExecutor",
    "ExecutionReporter",
    "ExecutionSettings",
    "FixedPrivilegeChecker",
    "NodeFinished",
    "NullExecutionReporter",
    "PRIVILEGE_REQUIRED",
    "PlanExecutor",
    "PlannedNode",
    "PreparedCase",
    "PreparedPlan",
    "PreparedSuite",
    "PrivilegeChecker",
    "ProcessPrivilegeChecker",
    "REPORT_INVALID",
    "REPORT_MISSING",
    "RUN_REQUEST_CASE_NODE_OVERRIDES",
    "RUN_REQUEST_IDENTITY_INVALID_FORMAT",
    "RUN_REQUEST_IDENTITY_NOT_FOUND",
    "RUN_REQUEST_PLAN_INPUT_OVERRIDE",
    "RUN_REQUEST_SUITE_CASE_INPUTS",
    "RUN_REQUEST_UNKNOWN_NODE_ID",
    "RunOutcome",
    "RunRequest",
    "RunRequestError",
    "RunTargetKind",
    "SECRET_ON_COMMAND_LINE",
    "ScriptRunner",
    "SuiteExecutor",
    "TestOrchestrationEngine",
    "WORKING_DIR_CONTAINMENT_FAILED",
    "engine_version",
    "enforce_privilege",
    "host_name",
    "interpreter_version",
    "required_privilege",
    "runner_metadata",
]
