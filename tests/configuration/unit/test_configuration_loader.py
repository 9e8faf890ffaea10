"""Configuration loader tests."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from simple_test_orchestrator.configuration.loader import ConfigurationError, load_configuration


def _write_file(path: Path, contents: str) -> Path:
    path.write_text(contents, encoding="utf-8")
    return path


def test_loads_yaml_configuration_with_defaults(tmp_path: Path) -> None:
    config_path = _write_file(
        tmp_path / "orchestrator.yaml",
        """
roots:
  test_cases: ./cases
  test_suites: ./suites
  test_plans: ./plans
runs_root: ./runs
""",
    )

    configuration = load_configuration(config_path)

    base = tmp_path.resolve()
    assert configuration.path == config_path.resolve()
    assert configuration.roots.test_cases == base / "cases"
    assert configuration.roots.test_suites == base / "suites"
    assert configuration.roots.test_plans == base / "plans"
    assert configuration.runs_root == base / "runs"
    assert configuration.runner.interpreter == sys.executable
    assert configuration.runner.script_name == "run.py"
    assert configuration.runner.module_search_path is None
    assert configuration.runner.default_timeout_seconds == 300
    assert configuration.runner.termination_grace_seconds == 5
    assert configuration.runner.poll_interval_ms == 100
    assert configuration.runner.poll_interval_seconds == pytest.approx(0.1)
    assert configuration.logging.level == "WARNING"


def test_loads_json_configuration_with_runner_overrides(tmp_path: Path) -> None:
    shared = tmp_path / "shared"
    config_path = _write_file(
        tmp_path / "orchestrator.json",
        json.dumps(
            {
                "roots": {
                    "test_cases": str(tmp_path / "cases"),
                    "test_suites": "suites",
                    "test_plans": "plans",
                },
                "runs_root": "runs",
                "runner": {
                    "interpreter": "/opt/python/bin/python3",
                    "script_name": "main.py",
                    "module_search_path": "shared",
                    "default_timeout_seconds": 60,
                    "termination_grace_seconds": 2,
                    "poll_interval_ms": 20,
                },
                "logging": {"level": "debug"},
            }
        ),
    )

    configuration = load_configuration(config_path)

    assert configuration.roots.test_cases == tmp_path / "cases"
    assert configuration.runner.interpreter == "/opt/python/bin/python3"
    assert configuration.runner.script_name == "main.py"
    assert configuration.runner.module_search_path == shared.resolve()
    assert configuration.runner.default_timeout_seconds == 60
    assert configuration.runner.termination_grace_seconds == 2
    assert configuration.runner.poll_interval_seconds == pytest.approx(0.02)
    assert configuration.logging.level == "DEBUG"


def test_optional_placeholders_fall_back_to_defaults(tmp_path: Path) -> None:
    config_path = _write_file(
        tmp_path / "orchestrator.yaml",
        """
roots:
  test_cases: cases
  test_suites: suites
  test_plans: plans
runs_root: runs
runner:
  interpreter: "<OPTIONAL>"
  default_timeout_seconds: "<OPTIONAL>"
logging:
  level: "<OPTIONAL>"
""",
    )

    configuration = load_configuration(config_path)

    assert configuration.runner.interpreter == sys.executable
    assert configuration.runner.default_timeout_seconds == 300
    assert configuration.logging.level == "WARNING"


def test_errors_when_required_placeholder_is_left_in_place(tmp_path: Path) -> None:
    config_path = _write_file(
        tmp_path / "orchestrator.yaml",
        """
roots:
  test_cases: cases
  test_suites: suites
  test_plans: plans
runs_root: "<REQUIRED>"
""",
    )

    with pytest.raises(ConfigurationError, match="runs_root must replace the <REQUIRED>"):
        load_configuration(config_path)


@pytest.mark.parametrize(
    "roots_section",
    [
        None,
        {},
        {"test_cases": "cases", "test_suites": "suites"},
        {"test_cases": " ", "test_suites": "suites", "test_plans": "plans"},
    ],
)
def test_errors_when_roots_are_incomplete(tmp_path: Path, roots_section: dict | None) -> None:
    config = {"roots": roots_section, "runs_root": "runs"}
    config_path = _write_file(tmp_path / "orchestrator.yaml", yaml_dump(config))

    with pytest.raises(ConfigurationError):
        load_configuration(config_path)


@pytest.mark.parametrize(
    ("runner_section", "message"),
    [
        ({"default_timeout_seconds": 0}, "runner.default_timeout_seconds"),
        ({"termination_grace_seconds": "soon"}, "runner.termination_grace_seconds"),
        ({"poll_interval_ms": True}, "runner.poll_interval_ms"),
        ({"interpreter": 3}, "runner.interpreter"),
    ],
)
def test_errors_when_runner_settings_invalid(
    tmp_path: Path, runner_section: dict, message: str
) -> None:
    config = {
        "roots": {"test_cases": "cases", "test_suites": "suites", "test_plans": "plans"},
        "runs_root": "runs",
        "runner": runner_section,
    }
    config_path = _write_file(tmp_path / "orchestrator.yaml", yaml_dump(config))

    with pytest.raises(ConfigurationError, match=message):
        load_configuration(config_path)


def test_errors_when_log_level_unknown(tmp_path: Path) -> None:
    config = {
        "roots": {"test_cases": "cases", "test_suites": "suites", "test_plans": "plans"},
        "runs_root": "runs",
        "logging": {"level": "chatty"},
    }
    config_path = _write_file(tmp_path / "orchestrator.yaml", yaml_dump(config))

    with pytest.raises(ConfigurationError, match="not a valid log level"):
        load_configuration(config_path)


def test_errors_when_configuration_root_is_not_mapping(tmp_path: Path) -> None:
    config_path = _write_file(tmp_path / "orchestrator.yaml", "[]")

    with pytest.raises(ConfigurationError, match="Configuration root must be a mapping"):
        load_configuration(config_path)


def test_errors_when_configuration_file_missing(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Configuration file not found"):
        load_configuration(tmp_path / "absent.yaml")


def test_errors_when_yaml_is_malformed(tmp_path: Path) -> None:
    config_path = _write_file(tmp_path / "orchestrator.yaml", "roots: [unclosed")

    with pytest.raises(ConfigurationError, match="Failed to parse configuration file"):
        load_configuration(config_path)


def yaml_dump(value: object) -> str:
    """Local helper to avoid importing yaml in tests."""
    return json.dumps(value)
