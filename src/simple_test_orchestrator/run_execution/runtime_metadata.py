"""Facts about the engine host recorded with every result."""

from __future__ import annotations

import functools
import logging
import os
import socket
import subprocess
from importlib import metadata

from simple_test_orchestrator.run_storage import RunnerMetadata

DISTRIBUTION_NAME = "simple-test-orchestrator"
HOST_NAME_VARIABLES = ("COMPUTERNAME", "HOSTNAME")

logger = logging.getLogger(__name__)


def engine_version() -> str:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return "0+unknown"


def host_name() -> str:
    for variable in HOST_NAME_VARIABLES:
        value = os.environ.get(variable, "").strip()
        if value:
            return value
    return socket.gethostname()


@functools.lru_cache(maxsize=16)
def interpreter_version(interpreter: str) -> str | None:
    """Return ``<interpreter> --version`` output, or None when it cannot run."""
    try:
        completed = subprocess.run(
            [interpreter, "--version"],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("Cannot query version of %s: %s", interpreter, exc)
        return None
    output = (completed.stdout or completed.stderr).strip()
    return output or None


def runner_metadata(interpreter: str, command_line: str | None = None) -> RunnerMetadata:
    return RunnerMetadata(
        engine_version=engine_version(),
        interpreter=interpreter,
        interpreter_version=interpreter_version(interpreter),
        host_name=host_name(),
        command_line=command_line,
    )
