"""Discovery domain entities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from simple_test_orchestrator.manifest_model import (
    Identity,
    TestCaseManifest,
    TestPlanManifest,
    TestSuiteManifest,
)


@dataclass(frozen=True)
class DiscoveredTestCase:
    """A loaded test case manifest and the script next to it."""

    __test__ = False

    manifest: TestCaseManifest
    manifest_path: Path
    folder_path: Path
    script_path: Path

    @property
    def identity(self) -> Identity:
        return self.manifest.identity


@dataclass(frozen=True)
class DiscoveredTestSuite:
    """A loaded suite manifest with each node resolved to a case identity."""

    __test__ = False

    manifest: TestSuiteManifest
    manifest_path: Path
    folder_path: Path
    node_cases: Mapping[str, Identity] = field(default_factory=dict)

    @property
    def identity(self) -> Identity:
        return self.manifest.identity


@dataclass(frozen=True)
class DiscoveredTestPlan:
    """A loaded plan manifest with its suite references resolved."""

    __test__ = False

    manifest: TestPlanManifest
    manifest_path: Path
    folder_path: Path
    suite_identities: tuple[Identity, ...] = ()

    @property
    def identity(self) -> Identity:
        return self.manifest.identity


@dataclass(frozen=True)
class DiscoveryResult:
    """Validated in-memory index of every manifest under the configured roots."""

    test_case_root: Path
    test_suite_root: Path
    test_plan_root: Path
    test_cases: Mapping[Identity, DiscoveredTestCase]
    test_suites: Mapping[Identity, DiscoveredTestSuite]
    test_plans: Mapping[Identity, DiscoveredTestPlan]

    def node_case(self, suite: DiscoveredTestSuite, node_id: str) -> DiscoveredTestCase:
        return self.test_cases[suite.node_cases[node_id]]
