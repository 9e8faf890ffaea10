"""Configuration scaffold generation helpers."""

from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_FILENAME = "orchestrator.yaml"

_CONFIG_SCAFFOLD_TEMPLATE = """# Engine configuration template for simple-test-orchestrator.
# Replace every <REQUIRED> placeholder before running discover or run.
# Replace <OPTIONAL> placeholders only when your setup needs them.
# Relative paths resolve against the directory holding this file.

roots:
  # Each root is scanned recursively for its manifest file name:
  # test.manifest.json, suite.manifest.json and plan.manifest.json.
  test_cases: "<REQUIRED>"
  test_suites: "<REQUIRED>"
  test_plans: "<REQUIRED>"

# Run folders and the shared index.jsonl are written here.
runs_root: "<REQUIRED>"

runner:
  # Defaults to the Python interpreter running the engine.
  interpreter: "<OPTIONAL>"
  # Companion script every test case folder must contain (default run.py).
  script_name: "<OPTIONAL>"
  # Prepended to PYTHONPATH so scripts can import shared helpers.
  module_search_path: "<OPTIONAL>"
  default_timeout_seconds: "<OPTIONAL>"
  termination_grace_seconds: "<OPTIONAL>"
  poll_interval_ms: "<OPTIONAL>"

logging:
  level: "<OPTIONAL>"
"""


def build_placeholder_configuration() -> str:
    """Build a YAML engine configuration template with placeholders and inline guidance."""
    return _CONFIG_SCAFFOLD_TEMPLATE


def write_placeholder_configuration(output_path: Path | str) -> Path:
    """Write the placeholder engine configuration template to the requested output path.

    Args:
      output_path: Destination file path for the scaffold.

    Returns:
      The resolved destination path.

    Raises:
      FileExistsError: If the destination file already exists.
      OSError: If writing the scaffold fails.
    """
    destination = Path(output_path)
    if destination.exists():
        raise FileExistsError(f"Engine configuration file already exists: {destination.resolve()}")
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(build_placeholder_configuration(), encoding="utf-8")
    return destination.resolve()
