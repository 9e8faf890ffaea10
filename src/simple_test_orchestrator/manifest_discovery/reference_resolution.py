"""Resolution of suite node references against the test case root."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .discovery_issues import REASON_MISSING_MANIFEST, REASON_NOT_FOUND, REASON_OUT_OF_ROOT

TEST_CASE_MANIFEST_NAME = "test.manifest.json"
TEST_SUITE_MANIFEST_NAME = "suite.manifest.json"
TEST_PLAN_MANIFEST_NAME = "plan.manifest.json"


@dataclass(frozen=True)
class CaseReference:
    """A node reference resolved to a test case folder and its manifest."""

    ref: str
    folder_path: Path
    manifest_path: Path


class ReferenceResolutionError(Exception):
    """Raised when a node reference does not resolve to a test case manifest."""

    def __init__(self, reason: str, ref: str, resolved_path: Path, expected_root: Path) -> None:
        super().__init__(f"Test case reference '{ref}' is invalid ({reason}): {resolved_path}")
        self.reason = reason
        self.ref = ref
        self.resolved_path = resolved_path
        self.expected_root = expected_root


def canonical_path(path: Path) -> Path:
    """Return an absolute path with symlinks and ``..`` segments resolved."""
    return Path(path).expanduser().resolve(strict=False)


def is_contained(root: Path, candidate: Path) -> bool:
    return candidate == root or candidate.is_relative_to(root)


def resolve_test_case_ref(test_case_root: Path, ref: str) -> CaseReference:
    """Resolve ``ref`` relative to the case root, enforcing containment.

    Symlinks are followed before the containment check, so a link that
    points outside the root is rejected like a ``..`` traversal.
    """
    expected_root = canonical_path(test_case_root)
    resolved = canonical_path(expected_root / ref)
    if not is_contained(expected_root, resolved):
        raise ReferenceResolutionError(REASON_OUT_OF_ROOT, ref, resolved, expected_root)
    if not resolved.is_dir():
        raise ReferenceResolutionError(REASON_NOT_FOUND, ref, resolved, expected_root)
    manifest_path = resolved / TEST_CASE_MANIFEST_NAME
    if not manifest_path.is_file():
        raise ReferenceResolutionError(REASON_MISSING_MANIFEST, ref, resolved, expected_root)
    return CaseReference(ref=ref, folder_path=resolved, manifest_path=manifest_path)
