"""Discovery validation issues and the all-or-nothing discovery error."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DUPLICATE_IDENTITY = "Discovery.DuplicateIdentity"
SCHEMA_VERSION_UNSUPPORTED = "Manifest.SchemaVersion.Unsupported"
PARAMETER_TYPE_UNKNOWN = "Parameter.Type.Unknown"
PARAMETER_ENUM_EMPTY = "Parameter.Enum.Empty"
PARAMETER_NAME_DUPLICATE = "Parameter.Name.Duplicate"
SUITE_NODE_ID_DUPLICATE = "Suite.NodeId.Duplicate"
SUITE_TEST_CASE_REF_INVALID = "Suite.TestCaseRef.Invalid"
SUITE_INPUT_UNKNOWN = "Suite.Input.Unknown"
SUITE_CONTROLS_INVALID = "Suite.Controls.Invalid"
PLAN_ENVIRONMENT_INVALID_KEY = "Plan.Environment.InvalidKey"
PLAN_SUITE_REF_NOT_FOUND = "Plan.SuiteRef.NotFound"
PLAN_SUITE_REF_NON_UNIQUE = "Plan.SuiteRef.NonUnique"
PLAN_SUITE_REF_INVALID_FORMAT = "Plan.SuiteRef.InvalidFormat"

REASON_OUT_OF_ROOT = "OutOfRoot"
REASON_NOT_FOUND = "NotFound"
REASON_MISSING_MANIFEST = "MissingManifest"
REASON_NON_UNIQUE = "NonUnique"


@dataclass(frozen=True)
class ValidationIssue:
    """One rule violation found in the manifest graph."""

    code: str
    message: str
    path: Path | None = None
    reason: str | None = None
    conflict_paths: tuple[Path, ...] = ()
    data: Mapping[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-serializable diagnostic payload."""
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.path is not None:
            payload["path"] = str(self.path)
        if self.reason is not None:
            payload["reason"] = self.reason
        if self.conflict_paths:
            payload["conflictPaths"] = [str(path) for path in self.conflict_paths]
        if self.data:
            payload["data"] = dict(self.data)
        return payload


class DiscoveryError(Exception):
    """Raised when the manifest graph has one or more violations."""

    def __init__(self, issues: Sequence[ValidationIssue]) -> None:
        self.issues = tuple(issues)
        first = self.issues[0].message if self.issues else "unknown discovery failure"
        summary = f"Discovery found {len(self.issues)} issue(s); first: {first}"
        super().__init__(summary)

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(issue.code for issue in self.issues)

    def to_payload(self) -> list[dict[str, Any]]:
        return [issue.to_payload() for issue in self.issues]
