"""Manifest discovery and cross-reference validation service."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from typing import Any, TypeVar

from simple_test_orchestrator.environment_resolution import (
    EnvironmentResolutionError,
    validate_environment_keys,
)
from simple_test_orchestrator.manifest_model import (
    Identity,
    IdentityFormatError,
    ManifestParseError,
    ParameterType,
    TestCaseManifest,
    TestPlanManifest,
    TestSuiteManifest,
    load_manifest_document,
    parse_test_case_manifest,
    parse_test_plan_manifest,
    parse_test_suite_manifest,
)
from simple_test_orchestrator.parameter_binding import (
    PARAMETER_PATTERN_INVALID,
    ParameterBindingError,
    validate_default,
)

from .discovery_issues import (
    DUPLICATE_IDENTITY,
    PARAMETER_ENUM_EMPTY,
    PARAMETER_NAME_DUPLICATE,
    PARAMETER_TYPE_UNKNOWN,
    PLAN_ENVIRONMENT_INVALID_KEY,
    PLAN_SUITE_REF_INVALID_FORMAT,
    PLAN_SUITE_REF_NON_UNIQUE,
    PLAN_SUITE_REF_NOT_FOUND,
    REASON_NOT_FOUND,
    REASON_NON_UNIQUE,
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
from .reference_resolution import (
    TEST_CASE_MANIFEST_NAME,
    TEST_PLAN_MANIFEST_NAME,
    TEST_SUITE_MANIFEST_NAME,
    ReferenceResolutionError,
    canonical_path,
    resolve_test_case_ref,
)
from .schema_version_policy import SUPPORTED_SCHEMA_RANGE, is_supported_schema_version

DEFAULT_SCRIPT_NAME = "run.py"

logger = logging.getLogger(__name__)

ManifestT = TypeVar("ManifestT", TestCaseManifest, TestSuiteManifest, TestPlanManifest)


def discover_manifests(
    test_case_root: Path | str,
    test_suite_root: Path | str,
    test_plan_root: Path | str,
    *,
    script_name: str = DEFAULT_SCRIPT_NAME,
) -> DiscoveryResult:
    """Load and validate every manifest under the three roots.

    Args:
      test_case_root: Root scanned recursively for test case manifests.
      test_suite_root: Root scanned recursively for suite manifests.
      test_plan_root: Root scanned recursively for plan manifests.
      script_name: Companion script a test case folder must contain.

    Returns:
      The validated discovery index.

    Raises:
      DiscoveryError: When any manifest violates a rule. All issues found in
        the pass are reported together.
    """
    scanner = _ManifestScanner(
        canonical_path(Path(test_case_root)),
        canonical_path(Path(test_suite_root)),
        canonical_path(Path(test_plan_root)),
        script_name,
    )
    return scanner.scan()


class _ManifestScanner:  # pylint: disable=too-few-public-methods
    def __init__(
        self, case_root: Path, suite_root: Path, plan_root: Path, script_name: str
    ) -> None:
        self._case_root = case_root
        self._suite_root = suite_root
        self._plan_root = plan_root
        self._script_name = script_name
        self._issues: list[ValidationIssue] = []

    def scan(self) -> DiscoveryResult:
        cases = self._scan_test_cases()
        suites = self._scan_test_suites(cases)
        plans = self._scan_test_plans(suites)
        if self._issues:
            logger.debug("Discovery found %d issue(s)", len(self._issues))
            raise DiscoveryError(self._issues)
        logger.info(
            "Discovered %d test case(s), %d suite(s), %d plan(s)",
            len(cases),
            len(suites),
            len(plans),
        )
        return DiscoveryResult(
            test_case_root=self._case_root,
            test_suite_root=self._suite_root,
            test_plan_root=self._plan_root,
            test_cases=cases,
            test_suites={identity: items[0] for identity, items in suites.items()},
            test_plans={identity: items[0] for identity, items in plans.items()},
        )

    def _scan_test_cases(self) -> dict[Identity, DiscoveredTestCase]:
        found: dict[Identity, list[DiscoveredTestCase]] = {}
        for manifest_path in _iter_manifest_files(self._case_root, TEST_CASE_MANIFEST_NAME):
            script_path = manifest_path.parent / self._script_name
            if not script_path.is_file():
                logger.debug("Skipping %s: no %s next to it", manifest_path, self._script_name)
                continue
            manifest = self._load(manifest_path, parse_test_case_manifest)
            if manifest is None:
                continue
            self._check_parameters(manifest, manifest_path)
            found.setdefault(manifest.identity, []).append(
                DiscoveredTestCase(
                    manifest=manifest,
                    manifest_path=manifest_path,
                    folder_path=manifest_path.parent,
                    script_path=script_path,
                )
            )
        self._check_unique(found, "TestCase")
        return {identity: items[0] for identity, items in found.items()}

    def _scan_test_suites(
        self, cases: Mapping[Identity, DiscoveredTestCase]
    ) -> dict[Identity, list[DiscoveredTestSuite]]:
        cases_by_manifest = {case.manifest_path: case for case in cases.values()}
        found: dict[Identity, list[DiscoveredTestSuite]] = {}
        for manifest_path in _iter_manifest_files(self._suite_root, TEST_SUITE_MANIFEST_NAME):
            manifest = self._load(manifest_path, parse_test_suite_manifest)
            if manifest is None:
                continue
            self._check_controls(manifest, manifest_path)
            self._check_env_keys(manifest.environment.env, manifest_path, "suite.environment.env")
            node_cases = self._resolve_nodes(manifest, manifest_path, cases_by_manifest)
            found.setdefault(manifest.identity, []).append(
                DiscoveredTestSuite(
                    manifest=manifest,
                    manifest_path=manifest_path,
                    folder_path=manifest_path.parent,
                    node_cases=node_cases,
                )
            )
        self._check_unique(found, "TestSuite")
        return found

    def _scan_test_plans(
        self, suites: Mapping[Identity, list[DiscoveredTestSuite]]
    ) -> dict[Identity, list[DiscoveredTestPlan]]:
        found: dict[Identity, list[DiscoveredTestPlan]] = {}
        for manifest_path in _iter_manifest_files(self._plan_root, TEST_PLAN_MANIFEST_NAME):
            manifest = self._load(manifest_path, parse_test_plan_manifest)
            if manifest is None:
                continue
            for key in manifest.environment.unexpected_keys:
                self._add(
                    PLAN_ENVIRONMENT_INVALID_KEY,
                    f"Plan environment may only contain 'env'; found '{key}'.",
                    manifest_path,
                    data={"key": key},
                )
            self._check_env_keys(manifest.environment.env, manifest_path, "plan.environment.env")
            found.setdefault(manifest.identity, []).append(
                DiscoveredTestPlan(
                    manifest=manifest,
                    manifest_path=manifest_path,
                    folder_path=manifest_path.parent,
                    suite_identities=self._resolve_suite_refs(manifest, manifest_path, suites),
                )
            )
        self._check_unique(found, "TestPlan")
        return found

    def _load(
        self, manifest_path: Path, parser: Callable[[Mapping[str, Any]], ManifestT]
    ) -> ManifestT | None:
        try:
            document = load_manifest_document(manifest_path)
        except ManifestParseError as exc:
            self._add(exc.code, exc.message, manifest_path)
            return None
        raw_version = document.get("schemaVersion")
        schema_version = "" if raw_version is None else str(raw_version).strip()
        if not is_supported_schema_version(schema_version):
            self._add(
                SCHEMA_VERSION_UNSUPPORTED,
                f"schemaVersion '{schema_version}' is not supported; "
                f"expected {SUPPORTED_SCHEMA_RANGE}.",
                manifest_path,
                data={"schemaVersion": schema_version},
            )
            return None
        try:
            return parser(document)
        except ManifestParseError as exc:
            self._add(exc.code, exc.message, manifest_path)
            return None

    def _check_parameters(self, manifest: TestCaseManifest, manifest_path: Path) -> None:
        seen: set[str] = set()
        for definition in manifest.parameters:
            data = {"parameter": definition.name}
            if definition.name in seen:
                self._add(
                    PARAMETER_NAME_DUPLICATE,
                    f"Parameter '{definition.name}' is declared more than once.",
                    manifest_path,
                    data=data,
                )
            seen.add(definition.name)

            parameter_type = ParameterType.from_name(definition.type_name)
            if parameter_type is None:
                self._add(
                    PARAMETER_TYPE_UNKNOWN,
                    f"Parameter '{definition.name}' has unknown type '{definition.type_name}'.",
                    manifest_path,
                    data={**data, "type": definition.type_name},
                )
                continue
            if parameter_type is ParameterType.ENUM and not definition.enum_values:
                self._add(
                    PARAMETER_ENUM_EMPTY,
                    f"Enum parameter '{definition.name}' must declare enumValues.",
                    manifest_path,
                    data=data,
                )
                continue
            if definition.pattern is not None:
                try:
                    re.compile(definition.pattern)
                except re.error as exc:
                    self._add(
                        PARAMETER_PATTERN_INVALID,
                        f"Parameter '{definition.name}' pattern does not compile: {exc}.",
                        manifest_path,
                        data=data,
                    )
                    continue
            try:
                validate_default(definition)
            except ParameterBindingError as exc:
                self._add(exc.code, exc.message, manifest_path, data={**data, **exc.data})

    def _check_controls(self, manifest: TestSuiteManifest, manifest_path: Path) -> None:
        controls = manifest.controls
        limits = (
            ("repeat", controls.repeat, 1),
            ("maxParallel", controls.max_parallel, 1),
            ("retryOnError", controls.retry_on_error, 0),
        )
        for name, value, minimum in limits:
            if value < minimum:
                self._add(
                    SUITE_CONTROLS_INVALID,
                    f"controls.{name} must be >= {minimum}; found {value}.",
                    manifest_path,
                    data={"control": name, "value": value},
                )

    def _check_env_keys(self, env: Mapping[str, str], manifest_path: Path, layer: str) -> None:
        try:
            validate_environment_keys(env, layer)
        except EnvironmentResolutionError as exc:
            self._add(exc.code, exc.message, manifest_path, data={"layer": layer})

    def _resolve_nodes(
        self,
        manifest: TestSuiteManifest,
        manifest_path: Path,
        cases_by_manifest: Mapping[Path, DiscoveredTestCase],
    ) -> dict[str, Identity]:
        node_cases: dict[str, Identity] = {}
        seen: set[str] = set()
        for node in manifest.nodes:
            if node.node_id in seen:
                self._add(
                    SUITE_NODE_ID_DUPLICATE,
                    f"nodeId '{node.node_id}' is used more than once.",
                    manifest_path,
                    data={"nodeId": node.node_id},
                )
                continue
            seen.add(node.node_id)

            try:
                reference = resolve_test_case_ref(self._case_root, node.ref)
            except ReferenceResolutionError as exc:
                self._add(
                    SUITE_TEST_CASE_REF_INVALID,
                    str(exc),
                    manifest_path,
                    reason=exc.reason,
                    data={
                        "nodeId": node.node_id,
                        "ref": node.ref,
                        "resolvedPath": str(exc.resolved_path),
                        "expectedRoot": str(exc.expected_root),
                    },
                )
                continue

            case = cases_by_manifest.get(reference.manifest_path)
            if case is None:
                self._add(
                    SUITE_TEST_CASE_REF_INVALID,
                    f"Test case reference '{node.ref}' does not point at a discovered test case.",
                    manifest_path,
                    reason=REASON_NOT_FOUND,
                    data={"nodeId": node.node_id, "ref": node.ref},
                )
                continue

            declared = {definition.name for definition in case.manifest.parameters}
            for input_name in node.inputs:
                if input_name not in declared:
                    self._add(
                        SUITE_INPUT_UNKNOWN,
                        f"Node '{node.node_id}' sets input '{input_name}' which "
                        f"{case.identity} does not declare.",
                        manifest_path,
                        data={"nodeId": node.node_id, "input": input_name},
                    )
            node_cases[node.node_id] = case.identity
        return node_cases

    def _resolve_suite_refs(
        self,
        manifest: TestPlanManifest,
        manifest_path: Path,
        suites: Mapping[Identity, list[DiscoveredTestSuite]],
    ) -> tuple[Identity, ...]:
        resolved: list[Identity] = []
        for ref in manifest.suite_refs:
            try:
                identity = Identity.parse(ref)
            except IdentityFormatError as exc:
                self._add(
                    PLAN_SUITE_REF_INVALID_FORMAT, str(exc), manifest_path, data={"ref": ref}
                )
                continue
            matches = suites.get(identity, [])
            if not matches:
                self._add(
                    PLAN_SUITE_REF_NOT_FOUND,
                    f"Suite '{ref}' referenced by the plan was not found.",
                    manifest_path,
                    reason=REASON_NOT_FOUND,
                    data={"ref": ref},
                )
                continue
            if len(matches) > 1:
                self._add(
                    PLAN_SUITE_REF_NON_UNIQUE,
                    f"Suite '{ref}' referenced by the plan matches {len(matches)} manifests.",
                    manifest_path,
                    reason=REASON_NON_UNIQUE,
                    conflict_paths=tuple(match.manifest_path for match in matches),
                    data={"ref": ref},
                )
                continue
            resolved.append(identity)
        return tuple(resolved)

    def _check_unique(self, found: Mapping[Identity, list[Any]], entity_type: str) -> None:
        for identity, items in found.items():
            if len(items) < 2:
                continue
            paths = tuple(item.manifest_path for item in items)
            self._add(
                DUPLICATE_IDENTITY,
                f"{entity_type} identity {identity} is declared by {len(items)} manifests.",
                paths[0],
                conflict_paths=paths,
                data={"entityType": entity_type, "identity": str(identity)},
            )

    def _add(  # pylint: disable=too-many-arguments
        self,
        code: str,
        message: str,
        path: Path | None,
        *,
        reason: str | None = None,
        conflict_paths: tuple[Path, ...] = (),
        data: Mapping[str, Any] | None = None,
    ) -> None:
        self._issues.append(
            ValidationIssue(
                code=code,
                message=message,
                path=path,
                reason=reason,
                conflict_paths=conflict_paths,
                data=dict(data or {}),
            )
        )


def _iter_manifest_files(root: Path, file_name: str) -> Iterator[Path]:
    if not root.is_dir():
        logger.warning("Manifest root %s does not exist; treating it as empty", root)
        return
    for path in sorted(root.rglob(file_name)):
        if path.is_file():
            yield canonical_path(path)
