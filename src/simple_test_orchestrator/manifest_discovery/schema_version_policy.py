"""Schema version support policy for manifests and results."""

from __future__ import annotations

SUPPORTED_SCHEMA_MAJOR = 1
SUPPORTED_SCHEMA_RANGE = "1.x"
RESULT_SCHEMA_VERSION = f"{SUPPORTED_SCHEMA_MAJOR}.0"


def is_supported_schema_version(schema_version: str | None) -> bool:
    """Return True when the manifest's major version matches the supported major."""
    if not schema_version or not schema_version.strip():
        return False
    major_text = schema_version.strip().split(".")[0]
    if not major_text.isdigit():
        return False
    return int(major_text) == SUPPORTED_SCHEMA_MAJOR
