"""Manifest domain entities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .identity import Identity

DEFAULT_TIMEOUT_SECONDS = 300


class PrivilegeLevel(str, Enum):
    """Privilege a test case needs from the engine process."""

    USER = "User"
    ADMIN_PREFERRED = "AdminPreferred"
    ADMIN_REQUIRED = "AdminRequired"

    @property
    def rank(self) -> int:
        return _PRIVILEGE_RANKS[self]


_PRIVILEGE_RANKS = {
    PrivilegeLevel.USER: 0,
    PrivilegeLevel.ADMIN_PREFERRED: 1,
    PrivilegeLevel.ADMIN_REQUIRED: 2,
}


class ParameterType(str, Enum):
    """Declared parameter types; each one has a single coercion rule."""

    STRING = "string"
    INT = "int"
    DOUBLE = "double"
    BOOL = "bool"
    ENUM = "enum"
    PATH = "path"
    JSON = "json"
    STRING_ARRAY = "string[]"
    INT_ARRAY = "int[]"

    @staticmethod
    def from_name(name: object) -> ParameterType | None:
        """Return the type for a manifest type name, or None when unrecognized."""
        if not isinstance(name, str):
            return None
        normalized = name.strip().lower()
        normalized = _PARAMETER_TYPE_ALIASES.get(normalized, normalized)
        for candidate in ParameterType:
            if candidate.value == normalized:
                return candidate
        return None

    @property
    def is_numeric(self) -> bool:
        return self in (ParameterType.INT, ParameterType.DOUBLE, ParameterType.INT_ARRAY)

    @property
    def is_textual(self) -> bool:
        return self in (ParameterType.STRING, ParameterType.PATH, ParameterType.STRING_ARRAY)


_PARAMETER_TYPE_ALIASES = {"boolean": "bool"}


class TimeoutPolicy(str, Enum):
    """What a suite does with the remaining nodes after a node times out."""

    ABORT_ON_TIMEOUT = "AbortOnTimeout"
    CONTINUE = "Continue"


@dataclass(frozen=True)
class ParameterDefinition:  # pylint: disable=too-many-instance-attributes
    """One named argument a test case script accepts."""

    name: str
    type_name: str
    required: bool = False
    default: Any = None
    min_value: float | None = None
    max_value: float | None = None
    enum_values: tuple[str, ...] = ()
    pattern: str | None = None
    unit: str | None = None
    help_text: str | None = None

    @property
    def parameter_type(self) -> ParameterType:
        resolved = ParameterType.from_name(self.type_name)
        if resolved is None:
            raise ValueError(f"Parameter '{self.name}' has unknown type '{self.type_name}'.")
        return resolved

    @property
    def has_default(self) -> bool:
        return self.default is not None


@dataclass(frozen=True)
class TestCaseManifest:  # pylint: disable=too-many-instance-attributes
    """Declarative description of one externally scripted test case."""

    __test__ = False

    schema_version: str
    identity: Identity
    name: str
    category: str
    description: str | None = None
    privilege: PrivilegeLevel = PrivilegeLevel.USER
    timeout_seconds: int | None = None
    tags: tuple[str, ...] = ()
    parameters: tuple[ParameterDefinition, ...] = ()
    document: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def effective_timeout_seconds(self) -> int:
        if self.timeout_seconds is None:
            return DEFAULT_TIMEOUT_SECONDS
        return self.timeout_seconds

    def parameter(self, name: str) -> ParameterDefinition | None:
        for definition in self.parameters:
            if definition.name == name:
                return definition
        return None


@dataclass(frozen=True)
class SuiteControls:
    """Scheduling controls of a suite."""

    repeat: int = 1
    max_parallel: int = 1
    continue_on_failure: bool = False
    retry_on_error: int = 0
    timeout_policy: TimeoutPolicy = TimeoutPolicy.ABORT_ON_TIMEOUT

    def to_document(self) -> dict[str, Any]:
        return {
            "repeat": self.repeat,
            "maxParallel": self.max_parallel,
            "continueOnFailure": self.continue_on_failure,
            "retryOnError": self.retry_on_error,
            "timeoutPolicy": self.timeout_policy.value,
        }


@dataclass(frozen=True)
class RunnerHints:
    """Interpreter overrides a suite may request for its nodes."""

    interpreter: str | None = None
    interpreter_args: tuple[str, ...] = ()


@dataclass(frozen=True)
class SuiteEnvironment:
    """Environment section of a suite manifest."""

    env: Mapping[str, str] = field(default_factory=dict)
    working_dir: str | None = None
    runner: RunnerHints = field(default_factory=RunnerHints)


@dataclass(frozen=True)
class TestCaseNode:
    """A suite's reference to one test case plus its input overrides."""

    __test__ = False

    node_id: str
    ref: str
    inputs: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TestSuiteManifest:  # pylint: disable=too-many-instance-attributes
    """Ordered group of test case nodes with scheduling controls."""

    __test__ = False

    schema_version: str
    identity: Identity
    name: str
    description: str | None = None
    tags: tuple[str, ...] = ()
    nodes: tuple[TestCaseNode, ...] = ()
    controls: SuiteControls = field(default_factory=SuiteControls)
    environment: SuiteEnvironment = field(default_factory=SuiteEnvironment)
    document: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def node(self, node_id: str) -> TestCaseNode | None:
        for candidate in self.nodes:
            if candidate.node_id == node_id:
                return candidate
        return None


@dataclass(frozen=True)
class PlanEnvironment:
    """Environment section of a plan manifest; only ``env`` is allowed."""

    env: Mapping[str, str] = field(default_factory=dict)
    unexpected_keys: tuple[str, ...] = ()


@dataclass(frozen=True)
class TestPlanManifest:  # pylint: disable=too-many-instance-attributes
    """Ordered group of suite references."""

    __test__ = False

    schema_version: str
    identity: Identity
    name: str
    description: str | None = None
    tags: tuple[str, ...] = ()
    suite_refs: tuple[str, ...] = ()
    environment: PlanEnvironment = field(default_factory=PlanEnvironment)
    document: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

