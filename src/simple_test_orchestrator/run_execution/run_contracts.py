"""Run execution entities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from simple_test_orchestrator.process_execution import RunStatus

RUN_REQUEST_IDENTITY_NOT_FOUND = "RunRequest.Identity.NotFound"
RUN_REQUEST_IDENTITY_INVALID_FORMAT = "RunRequest.Identity.InvalidFormat"
RUN_REQUEST_UNKNOWN_NODE_ID = "RunRequest.NodeOverrides.UnknownNodeId"
RUN_REQUEST_PLAN_INPUT_OVERRIDE = "RunRequest.Plan.InputOverrideNotAllowed"
RUN_REQUEST_SUITE_CASE_INPUTS = "RunRequest.Suite.CaseInputsNotAllowed"
RUN_REQUEST_CASE_NODE_OVERRIDES = "RunRequest.TestCase.NodeOverridesNotAllowed"
PRIVILEGE_REQUIRED = "Privilege.Required"


class RunTargetKind(str, Enum):
    """Kind of entity a run request targets."""

    TEST_CASE = "testCase"
    SUITE = "suite"
    PLAN = "plan"

    @staticmethod
    def from_name(name: str) -> RunTargetKind:
        normalized = name.strip().replace("-", "").replace("_", "").lower()
        for candidate in RunTargetKind:
            if candidate.value.lower() == normalized:
                return candidate
        if normalized == "case":
            return RunTargetKind.TEST_CASE
        raise ValueError(f"Unknown run target kind '{name}'.")


class RunRequestError(Exception):
    """Raised when a run request cannot be honored before any process starts."""

    def __init__(self, code: str, message: str, data: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = dict(data or {})


@dataclass(frozen=True)
class RunRequest:
    """Input contract for executing one run target."""

    kind: RunTargetKind
    target: str
    case_inputs: Mapping[str, Any] = field(default_factory=dict)
    node_overrides: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    environment_overrides: Mapping[str, str] = field(default_factory=dict)
    plan_context: str | None = None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {self.kind.value: self.target}
        if self.case_inputs:
            document["caseInputs"] = dict(self.case_inputs)
        if self.node_overrides:
            document["nodeOverrides"] = {
                node_id: {"inputs": dict(inputs)} for node_id, inputs in self.node_overrides.items()
            }
        if self.environment_overrides:
            document["environmentOverrides"] = {"env": dict(self.environment_overrides)}
        if self.plan_context:
            document["planContext"] = self.plan_context
        return document


@dataclass(frozen=True)
class RunOutcome:
    """Output contract for one completed run."""

    run_id: str
    kind: RunTargetKind
    status: RunStatus
    run_folder: Path
    child_run_ids: tuple[str, ...] = ()
