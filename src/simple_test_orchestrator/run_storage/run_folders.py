"""Allocation of unique, timestamped run folders."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from pathlib import Path

CASE_RUN_PREFIX = "R"
GROUP_RUN_PREFIX = "G"
ALLOCATION_ATTEMPTS = 10

logger = logging.getLogger(__name__)


def new_run_id(prefix: str, moment: datetime) -> str:
    """Return ``<prefix>-YYYYMMDD-HHMMSSffffff-<8 hex>``."""
    return f"{prefix}-{moment:%Y%m%d-%H%M%S%f}-{secrets.token_hex(4)}"


def allocate_run_folder(runs_root: Path, prefix: str, moment: datetime) -> tuple[str, Path]:
    """Create a fresh folder under ``runs_root`` and return its id and path.

    The folder is created exclusively, so concurrent allocations never share
    a folder even if their ids collide.
    """
    runs_root.mkdir(parents=True, exist_ok=True)
    for _ in range(ALLOCATION_ATTEMPTS):
        run_id = new_run_id(prefix, moment)
        folder = runs_root / run_id
        try:
            folder.mkdir()
        except FileExistsError:
            logger.debug("Run id %s already taken; retrying", run_id)
            continue
        return run_id, folder
    raise FileExistsError(f"Could not allocate a unique run folder under {runs_root}.")
