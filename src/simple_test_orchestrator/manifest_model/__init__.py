"""Manifest model exports."""

from .identity import Identity, IdentityFormatError
from .manifest_models import (
    DEFAULT_TIMEOUT_SECONDS,
    ParameterDefinition,
    ParameterType,
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
from .manifest_parsing import (
    ManifestParseError,
    load_manifest_document,
    parse_test_case_manifest,
    parse_test_plan_manifest,
    parse_test_suite_manifest,
)

__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "Identity",
    "IdentityFormatError",
    "ManifestParseError",
    "ParameterDefinition",
    "ParameterType",
    "PlanEnvironment",
    "PrivilegeLevel",
    "RunnerHints",
    "SuiteControls",
    "SuiteEnvironment",
    "TestCaseManifest",
    "TestCaseNode",
    "TestPlanManifest",
    "TestSuiteManifest",
    "TimeoutPolicy",
    "load_manifest_document",
    "parse_test_case_manifest",
    "parse_test_plan_manifest",
    "parse_test_suite_manifest",
]
