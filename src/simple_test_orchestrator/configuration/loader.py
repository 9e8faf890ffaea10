"""Configuration loader service."""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from simple_test_orchestrator.manifest_discovery import DEFAULT_SCRIPT_NAME
from simple_test_orchestrator.manifest_model import DEFAULT_TIMEOUT_SECONDS

from .runtime_settings import Configuration, LoggingSettings, ManifestRoots, RunnerSettings

REQUIRED_PLACEHOLDER = "<REQUIRED>"
OPTIONAL_PLACEHOLDER = "<OPTIONAL>"
DEFAULT_TERMINATION_GRACE_SECONDS = 5
DEFAULT_POLL_INTERVAL_MS = 100
DEFAULT_LOG_LEVEL = "WARNING"


class ConfigurationError(Exception):
    """Raised when the configuration file is invalid."""


def load_configuration(config_path: Path | str) -> Configuration:
    """Load and validate the engine configuration file (YAML or JSON)."""
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    text = path.read_text(encoding="utf-8")
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse configuration file: {exc}") from exc

    if parsed is None:
        parsed = {}

    if not isinstance(parsed, Mapping):
        raise ConfigurationError("Configuration root must be a mapping.")

    base_path = path.resolve().parent
    return Configuration(
        path=path.resolve(),
        roots=_parse_roots_section(parsed.get("roots"), base_path),
        runs_root=_resolve_path(
            base_path, _require_non_empty_string(parsed.get("runs_root"), "runs_root")
        ),
        runner=_parse_runner_section(parsed.get("runner"), base_path),
        logging=_parse_logging_section(parsed.get("logging")),
    )


def _parse_roots_section(value: Any, base_path: Path) -> ManifestRoots:
    section = _require_mapping(value, "roots")
    return ManifestRoots(
        test_cases=_resolve_path(
            base_path, _require_non_empty_string(section.get("test_cases"), "roots.test_cases")
        ),
        test_suites=_resolve_path(
            base_path, _require_non_empty_string(section.get("test_suites"), "roots.test_suites")
        ),
        test_plans=_resolve_path(
            base_path, _require_non_empty_string(section.get("test_plans"), "roots.test_plans")
        ),
    )


def _parse_runner_section(value: Any, base_path: Path) -> RunnerSettings:
    section = _optional_mapping(value, "runner")
    interpreter = _optional_string(section.get("interpreter"), "runner.interpreter")
    script_name = _optional_string(section.get("script_name"), "runner.script_name")
    module_search_path = _optional_string(
        section.get("module_search_path"), "runner.module_search_path"
    )
    return RunnerSettings(
        interpreter=interpreter or sys.executable,
        script_name=script_name or DEFAULT_SCRIPT_NAME,
        module_search_path=(
            _resolve_path(base_path, module_search_path) if module_search_path else None
        ),
        default_timeout_seconds=_require_positive_int(
            _optional_value(section.get("default_timeout_seconds"), DEFAULT_TIMEOUT_SECONDS),
            "runner.default_timeout_seconds",
        ),
        termination_grace_seconds=_require_positive_int(
            _optional_value(
                section.get("termination_grace_seconds"), DEFAULT_TERMINATION_GRACE_SECONDS
            ),
            "runner.termination_grace_seconds",
        ),
        poll_interval_ms=_require_positive_int(
            _optional_value(section.get("poll_interval_ms"), DEFAULT_POLL_INTERVAL_MS),
            "runner.poll_interval_ms",
        ),
    )


def _parse_logging_section(value: Any) -> LoggingSettings:
    section = _optional_mapping(value, "logging")
    level = _optional_string(section.get("level"), "logging.level") or DEFAULT_LOG_LEVEL
    normalized = level.upper()
    if not isinstance(logging.getLevelName(normalized), int):
        raise ConfigurationError(f"logging.level '{level}' is not a valid log level.")
    return LoggingSettings(level=normalized)


def _resolve_path(base_path: Path, raw_path: str) -> Path:
    candidate = Path(raw_path).expanduser()
    if not candidate.is_absolute():
        return (base_path / candidate).resolve()
    return candidate


def _optional_value(value: Any, default: Any) -> Any:
    if value is None or value == OPTIONAL_PLACEHOLDER:
        return default
    return value


def _require_mapping(value: Any, section_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"Configuration section '{section_name}' is required.")
    return value


def _optional_mapping(value: Any, section_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"Configuration section '{section_name}' must be a mapping.")
    return value


def _require_non_empty_string(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(f"{field_name} must be a string.")
    stripped = value.strip()
    if not stripped:
        raise ConfigurationError(f"{field_name} must not be empty.")
    if stripped == REQUIRED_PLACEHOLDER:
        raise ConfigurationError(f"{field_name} must replace the {stripped} placeholder.")
    return stripped


def _optional_string(value: Any, field_name: str) -> str | None:
    if value is None or value == OPTIONAL_PLACEHOLDER:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"{field_name} must be a string.")
    stripped = value.strip()
    return stripped or None


def _require_positive_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be an integer.")
    if not isinstance(value, int):
        raise ConfigurationError(f"{field_name} must be an integer.")
    if value <= 0:
        raise ConfigurationError(f"{field_name} must be greater than zero.")
    return value
