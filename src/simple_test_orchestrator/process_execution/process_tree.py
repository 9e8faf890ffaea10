"""Platform-specific termination of a child process and its descendants."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import time
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class ProcessTreeTerminator(Protocol):  # pylint: disable=too-few-public-methods
    """Capability to kill a launched process together with its descendants."""

    def terminate_tree(self, pid: int) -> None:
        """Terminate ``pid`` and everything it spawned."""


class PosixProcessTreeTerminator:  # pylint: disable=too-few-public-methods
    """Signal the session's process group: SIGTERM, grace period, SIGKILL."""

    def __init__(self, grace_seconds: float = 5.0, poll_seconds: float = 0.05) -> None:
        self._grace_seconds = grace_seconds
        self._poll_seconds = poll_seconds

    def terminate_tree(self, pid: int) -> None:
        if not _signal_group(pid, signal.SIGTERM):
            return
        deadline = time.monotonic() + self._grace_seconds
        while time.monotonic() < deadline and not _has_exited(pid):
            time.sleep(self._poll_seconds)
        # Descendants may outlive the leader; sweep the whole group.
        _signal_group(pid, signal.SIGKILL)


class WindowsProcessTreeTerminator:  # pylint: disable=too-few-public-methods
    """Delegate tree termination to ``taskkill /T /F``."""

    def terminate_tree(self, pid: int) -> None:
        completed = subprocess.run(
            ["taskkill", "/T", "/F", "/PID", str(pid)],
            capture_output=True,
            text=True,
            check=False,
        )
        if completed.returncode != 0:
            logger.debug(
                "taskkill for pid %s returned %s: %s", pid, completed.returncode, completed.stderr
            )


def default_terminator(grace_seconds: float = 5.0) -> ProcessTreeTerminator:
    """Return the terminator for the current platform."""
    if sys.platform == "win32":
        return WindowsProcessTreeTerminator()
    return PosixProcessTreeTerminator(grace_seconds=grace_seconds)


def process_group_options() -> dict[str, Any]:
    """Popen keyword arguments that isolate the child in its own process group."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def _signal_group(pid: int, signum: int) -> bool:
    try:
        os.killpg(pid, signum)
    except ProcessLookupError:
        return False
    except PermissionError as exc:
        logger.warning("Cannot signal process group %s: %s", pid, exc)
        return False
    return True


def _has_exited(pid: int) -> bool:
    if not hasattr(os, "waitid"):
        return False
    # WNOWAIT leaves the child reapable by its Popen object.
    try:
        status = os.waitid(os.P_PID, pid, os.WEXITED | os.WNOHANG | os.WNOWAIT)
    except ChildProcessError:
        return True
    return status is not None
