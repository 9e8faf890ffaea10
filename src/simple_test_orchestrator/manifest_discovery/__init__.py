"""Manifest discovery exports."""

from .discovery_issues import (
    DUPLICATE_IDENTITY,
    PARAMETER_ENUM_EMPTY,
    PARAMETER_NAME_DUPLICATE,
    PARAMETER_TYPE_UNKNOWN,
    PLAN_ENVIRONMENT_INVALID_KEY,
    PLAN_SUITE_REF_INVALID_FORMAT,
    PLAN_SUITE_REF_NON_UNIQUE,
    PLAN_SUITE_REF_NOT_FOUND,
    REASON_MISSING_MANIFEST,
    REASON_NON_UNIQUE,
    REASON_NOT_FOUND,
    REASON_OUT_OF_ROOT,
    SCHEMA_VERSION_UNSUPPORTED,
    SUITE_CONTROLS_INVALID,
    SUITE_INPUT_UNKNOWN,
    SUITE_NODE_ID_DUPLICATE,
    SUITE_TEST_CASE_REF_INVALID,
    DiscoveryError,
    ValidationIssue,
)
from .discovery_models import (
    DiscoveredTestCase,
    DiscoveredTestPlan,
    DiscoveredTestSuite,
    DiscoveryResult,
)
from .manifest_scanner import DEFAULT_SCRIPT_NAME, discover_manifests
from .reference_resolution import (
    TEST_CASE_MANIFEST_NAME,
    TEST_PLAN_MANIFEST_NAME,
    TEST_SUITE_MANIFEST_NAME,
    CaseReference,
    ReferenceResolutionError,
    canonical_path,
    is_contained,
    resolve_test_case_ref,
)
from .schema_version_policy import (
    RESULT_SCHEMA_VERSION,
    SUPPORTED_SCHEMA_MAJOR,
    is_supported_schema_version,
)

__all__ = [
    "CaseReference",
    "DEFAULT_SCRIPT_NAME",
    "DUPLICATE_IDENTITY",
    "DiscoveredTestCase",
    "DiscoveredTestPlan",
    "DiscoveredTestSuite",
    "DiscoveryError",
    "DiscoveryResult",
    "PARAMETER_ENUM_EMPTY",
    "PARAMETER_NAME_DUPLICATE",
    "PARAMETER_TYPE_UNKNOWN",
    "PLAN_ENVIRONMENT_INVALID_KEY",
    "PLAN_SUITE_REF_INVALID_FORMAT",
    "PLAN_SUITE_REF_NON_UNIQUE",
    "PLAN_SUITE_REF_NOT_FOUND",
    "REASON_MISSING_MANIFEST",
    "REASON_NON_UNIQUE",
    "REASON_NOT_FOUND",
    "REASON_OUT_OF_ROOT",
    "RESULT_SCHEMA_VERSION",
    "ReferenceResolutionError",
    "SCHEMA_VERSION_UNSUPPORTED",
    "SUITE_CONTROLS_INVALID",
    "SUITE_INPUT_UNKNOWN",
    "SUITE_NODE_ID_DUPLICATE",
    "SUITE_TEST_CASE_REF_INVALID",
    "SUPPORTED_SCHEMA_MAJOR",
    "TEST_CASE_MANIFEST_NAME",
    "TEST_PLAN_MANIFEST_NAME",
    "TEST_SUITE_MANIFEST_NAME",
    "ValidationIssue",
    "canonical_path",
    "discover_manifests",
    "is_contained",
    "is_supported_schema_version",
    "resolve_test_case_ref",
]
