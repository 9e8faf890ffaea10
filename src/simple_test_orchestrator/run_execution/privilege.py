"""Engine privilege detection and enforcement."""

from __future__ import annotations

import ctypes
import logging
import os
import sys
from collections.abc import Iterable
from typing import Protocol

from simple_test_orchestrator.manifest_model import PrivilegeLevel, TestCaseManifest

from .run_contracts import PRIVILEGE_REQUIRED, RunRequestError

logger = logging.getLogger(__name__)


class PrivilegeChecker(Protocol):  # pylint: disable=too-few-public-methods
    """Report whether the engine process runs elevated."""

    def is_elevated(self) -> bool:
        """Return True for an administrator / root process."""


class ProcessPrivilegeChecker:  # pylint: disable=too-few-public-methods
    """Inspect the current process token."""

    def is_elevated(self) -> bool:
        if sys.platform == "win32":
            try:
                return bool(ctypes.windll.shell32.IsUserAnAdmin())
            except OSError:
                return False
        return os.geteuid() == 0


class FixedPrivilegeChecker:  # pylint: disable=too-few-public-methods
    """Answer with a fixed elevation state."""

    def __init__(self, elevated: bool) -> None:
        self._elevated = elevated

    def is_elevated(self) -> bool:
        return self._elevated


def required_privilege(manifests: Iterable[TestCaseManifest]) -> PrivilegeLevel:
    """Return the strictest privilege any of ``manifests`` declares."""
    level = PrivilegeLevel.USER
    for manifest in manifests:
        if manifest.privilege.rank > level.rank:
            level = manifest.privilege
    return level


def enforce_privilege(level: PrivilegeLevel, checker: PrivilegeChecker, target: str) -> bool:
    """Raise when elevation is required but missing.

    Returns:
      True when elevation is preferred but missing, so the caller can record
      a warning with the run.
    """
    if level is PrivilegeLevel.USER or checker.is_elevated():
        return False
    if level is PrivilegeLevel.ADMIN_REQUIRED:
        raise RunRequestError(
            PRIVILEGE_REQUIRED,
            f"{target} requires an elevated engine process.",
            data={"target": target, "privilege": level.value},
        )
    logger.warning("%s prefers an elevated engine process; continuing without it", target)
    return True
