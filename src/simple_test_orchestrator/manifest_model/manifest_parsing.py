"""Manifest loading and parsing service."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from .identity import Identity, IdentityFormatError
from .manifest_models import (
    ParameterDefinition,
    PlanEnvironment,
    PrivilegeLevel,
    RunnerHints,
    SuiteControls,
    SuiteEnvironment,
    TestCaseManifest,
    TestCaseNode,
    TestPlanManifest,
    TestSuiteManifest,
    TimeoutPolicy,
)

MANIFEST_SCHEMA_INVALID = "Manifest.Schema.Invalid"
MANIFEST_REQUIRED_FIELD_MISSING = "Manifest.RequiredField.Missing"

PLAN_ENVIRONMENT_KEYS = frozenset({"env"})


class ManifestParseError(Exception):
    """Raised when a manifest file cannot be parsed into a model."""

    def __init__(self, code: str, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.path = path


def load_manifest_document(path: Path | str) -> Mapping[str, Any]:
    """Read a manifest file and return its JSON object."""
    manifest_path = Path(path)
    try:
        text = manifest_path.read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise ManifestParseError(
            MANIFEST_SCHEMA_INVALID, f"Cannot read manifest: {exc}", manifest_path
        ) from exc
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestParseError(
            MANIFEST_SCHEMA_INVALID, f"Manifest is not valid JSON: {exc}", manifest_path
        ) from exc
    if not isinstance(document, Mapping):
        raise ManifestParseError(
            MANIFEST_SCHEMA_INVALID, "Manifest root must be a JSON object.", manifest_path
        )
    return document


def parse_test_case_manifest(document: Mapping[str, Any]) -> TestCaseManifest:
    """Build a test case manifest from its JSON object."""
    privilege_raw = document.get("privilege", PrivilegeLevel.USER.value)
    try:
        privilege = PrivilegeLevel(privilege_raw)
    except ValueError as exc:
        raise ManifestParseError(
            MANIFEST_SCHEMA_INVALID, f"privilege '{privilege_raw}' is not recognized."
        ) from exc

    timeout_raw = document.get("timeoutSec")
    timeout_seconds = None
    if timeout_raw is not None:
        timeout_seconds = _require_positive_int(timeout_raw, "timeoutSec")

    parameters_raw = document.get("parameters") or []
    if not isinstance(parameters_raw, Sequence) or isinstance(parameters_raw, str):
        raise ManifestParseError(MANIFEST_SCHEMA_INVALID, "parameters must be a list.")

    return TestCaseManifest(
        schema_version=_schema_version(document),
        identity=_parse_identity(document),
        name=_require_non_empty_string(document.get("name"), "name"),
        category=_require_non_empty_string(document.get("category"), "category"),
        description=_optional_string(document.get("description"), "description"),
        privilege=privilege,
        timeout_seconds=timeout_seconds,
        tags=_string_tuple(document.get("tags"), "tags"),
        parameters=tuple(_parse_parameter(item) for item in parameters_raw),
        document=document,
    )


def parse_test_suite_manifest(document: Mapping[str, Any]) -> TestSuiteManifest:
    """Build a test suite manifest from its JSON object."""
    nodes_raw = document.get("testCases")
    if nodes_raw is None:
        raise ManifestParseError(MANIFEST_REQUIRED_FIELD_MISSING, "testCases is required.")
    if not isinstance(nodes_raw, Sequence) or isinstance(nodes_raw, str):
        raise ManifestParseError(MANIFEST_SCHEMA_INVALID, "testCases must be a list.")

    return TestSuiteManifest(
        schema_version=_schema_version(document),
        identity=_parse_identity(document),
        name=_require_non_empty_string(document.get("name"), "name"),
        description=_optional_string(document.get("description"), "description"),
        tags=_string_tuple(document.get("tags"), "tags"),
        nodes=tuple(_parse_node(item) for item in nodes_raw),
        controls=_parse_controls(document.get("controls")),
        environment=_parse_suite_environment(document.get("environment")),
        document=document,
    )


def parse_test_plan_manifest(document: Mapping[str, Any]) -> TestPlanManifest:
    """Build a test plan manifest from its JSON object."""
    suites_raw = document.get("suites")
    if suites_raw is None:
        raise ManifestParseError(MANIFEST_REQUIRED_FIELD_MISSING, "suites is required.")
    if not isinstance(suites_raw, Sequence) or isinstance(suites_raw, str):
        raise ManifestParseError(MANIFEST_SCHEMA_INVALID, "suites must be a list.")

    return TestPlanManifest(
        schema_version=_schema_version(document),
        identity=_parse_identity(document),
        name=_require_non_empty_string(document.get("name"), "name"),
        description=_optional_string(document.get("description"), "description"),
        tags=_string_tuple(document.get("tags"), "tags"),
        suite_refs=tuple(_parse_suite_ref(item) for item in suites_raw),
        environment=_parse_plan_environment(document.get("environment")),
        document=document,
    )


def _schema_version(document: Mapping[str, Any]) -> str:
    value = document.get("schemaVersion")
    if value is None:
        return ""
    return str(value).strip()


def _parse_identity(document: Mapping[str, Any]) -> Identity:
    entity_id = _require_non_empty_string(document.get("id"), "id")
    version = _require_non_empty_string(document.get("version"), "version")
    try:
        return Identity.parse(f"{entity_id}@{version}")
    except IdentityFormatError as exc:
        raise ManifestParseError(MANIFEST_SCHEMA_INVALID, str(exc)) from exc


def _parse_parameter(value: Any) -> ParameterDefinition:
    section = _require_mapping(value, "parameters[]")
    enum_values = section.get("enumValues")
    return ParameterDefinition(
        name=_require_non_empty_string(section.get("name"), "parameters[].name"),
        type_name=_require_non_empty_string(section.get("type"), "parameters[].type"),
        required=_optional_bool(section.get("required"), "parameters[].required"),
        default=section.get("default"),
        min_value=_optional_number(section.get("min"), "parameters[].min"),
        max_value=_optional_number(section.get("max"), "parameters[].max"),
        enum_values=_string_tuple(enum_values, "parameters[].enumValues"),
        pattern=_optional_string(section.get("pattern"), "parameters[].pattern"),
        unit=_optional_string(section.get("unit"), "parameters[].unit"),
        help_text=_optional_string(section.get("help"), "parameters[].help"),
    )


def _parse_node(value: Any) -> TestCaseNode:
    section = _require_mapping(value, "testCases[]")
    inputs = section.get("inputs") or {}
    if not isinstance(inputs, Mapping):
        raise ManifestParseError(MANIFEST_SCHEMA_INVALID, "testCases[].inputs must be an object.")
    return TestCaseNode(
        node_id=_require_non_empty_string(section.get("nodeId"), "testCases[].nodeId"),
        ref=_require_non_empty_string(section.get("ref"), "testCases[].ref"),
        inputs=dict(inputs),
    )


def _parse_controls(value: Any) -> SuiteControls:
    if value is None:
        return SuiteControls()
    section = _require_mapping(value, "controls")
    policy_raw = section.get("timeoutPolicy", TimeoutPolicy.ABORT_ON_TIMEOUT.value)
    try:
        timeout_policy = TimeoutPolicy(policy_raw)
    except ValueError as exc:
        raise ManifestParseError(
            MANIFEST_SCHEMA_INVALID, f"controls.timeoutPolicy '{policy_raw}' is not recognized."
        ) from exc
    return SuiteControls(
        repeat=_require_int(section.get("repeat", 1), "controls.repeat"),
        max_parallel=_require_int(section.get("maxParallel", 1), "controls.maxParallel"),
        continue_on_failure=_optional_bool(
            section.get("continueOnFailure"), "controls.continueOnFailure"
        ),
        retry_on_error=_require_int(section.get("retryOnError", 0), "controls.retryOnError"),
        timeout_policy=timeout_policy,
    )


def _parse_suite_environment(value: Any) -> SuiteEnvironment:
    if value is None:
        return SuiteEnvironment()
    section = _require_mapping(value, "environment")
    runner_section = section.get("runner")
    runner = RunnerHints()
    if runner_section is not None:
        runner_mapping = _require_mapping(runner_section, "environment.runner")
        runner = RunnerHints(
            interpreter=_optional_string(
                runner_mapping.get("interpreter"), "environment.runner.interpreter"
            ),
            interpreter_args=_string_tuple(
                runner_mapping.get("interpreterArgs"), "environment.runner.interpreterArgs"
            ),
        )
    return SuiteEnvironment(
        env=_parse_env_map(section.get("env"), "environment.env"),
        working_dir=_optional_string(section.get("workingDir"), "environment.workingDir"),
        runner=runner,
    )


def _parse_plan_environment(value: Any) -> PlanEnvironment:
    if value is None:
        return PlanEnvironment()
    section = _require_mapping(value, "environment")
    unexpected = tuple(sorted(str(key) for key in section if key not in PLAN_ENVIRONMENT_KEYS))
    return PlanEnvironment(
        env=_parse_env_map(section.get("env"), "environment.env"),
        unexpected_keys=unexpected,
    )


def _parse_suite_ref(value: Any) -> str:
    if isinstance(value, Mapping):
        return _require_non_empty_string(value.get("suite"), "suites[].suite")
    return _require_non_empty_string(value, "suites[]")


def _parse_env_map(value: Any, field_name: str) -> dict[str, str]:
    if value is None:
        return {}
    section = _require_mapping(value, field_name)
    env: dict[str, str] = {}
    for key, raw in section.items():
        if isinstance(raw, bool) or not isinstance(raw, str | int | float):
            raise ManifestParseError(
                MANIFEST_SCHEMA_INVALID, f"{field_name}.{key} must be a string value."
            )
        env[str(key)] = str(raw)
    return env


def _require_mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        raise ManifestParseError(MANIFEST_REQUIRED_FIELD_MISSING, f"{field_name} is required.")
    if not isinstance(value, Mapping):
        raise ManifestParseError(MANIFEST_SCHEMA_INVALID, f"{field_name} must be an object.")
    return value


def _require_non_empty_string(value: Any, field_name: str) -> str:
    if value is None:
        raise ManifestParseError(MANIFEST_REQUIRED_FIELD_MISSING, f"{field_name} is required.")
    if not isinstance(value, str):
        raise ManifestParseError(MANIFEST_SCHEMA_INVALID, f"{field_name} must be a string.")
    stripped = value.strip()
    if not stripped:
        raise ManifestParseError(
            MANIFEST_REQUIRED_FIELD_MISSING, f"{field_name} must not be empty."
        )
    return stripped


def _optional_string(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ManifestParseError(MANIFEST_SCHEMA_INVALID, f"{field_name} must be a string.")
    stripped = value.strip()
    return stripped or None


def _optional_bool(value: Any, field_name: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ManifestParseError(MANIFEST_SCHEMA_INVALID, f"{field_name} must be a boolean.")
    return value


def _optional_number(value: Any, field_name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ManifestParseError(MANIFEST_SCHEMA_INVALID, f"{field_name} must be a number.")
    return float(value)


def _require_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ManifestParseError(MANIFEST_SCHEMA_INVALID, f"{field_name} must be an integer.")
    return value


def _require_positive_int(value: Any, field_name: str) -> int:
    number = _require_int(value, field_name)
    if number <= 0:
        raise ManifestParseError(
            MANIFEST_SCHEMA_INVALID, f"{field_name} must be greater than zero."
        )
    return number


def _string_tuple(value: Any, field_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ManifestParseError(
            MANIFEST_SCHEMA_INVALID, f"{field_name} must be a list of strings."
        )
    items = []
    for item in value:
        if not isinstance(item, str):
            raise ManifestParseError(
                MANIFEST_SCHEMA_INVALID, f"{field_name} entries must be strings."
            )
        items.append(item)
    return tuple(items)
