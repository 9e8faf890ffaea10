"""Configuration scaffold builder tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from simple_test_orchestrator.configuration.config_scaffold_builder import (
    build_placeholder_configuration,
    write_placeholder_configuration,
)
from simple_test_orchestrator.configuration.loader import ConfigurationError, load_configuration


def test_build_placeholder_configuration_contains_all_supported_sections() -> None:
    scaffold = build_placeholder_configuration()

    assert "Engine configuration template" in scaffold
    assert "roots:" in scaffold
    assert "test_cases:" in scaffold
    assert "test_suites:" in scaffold
    assert "test_plans:" in scaffold
    assert "runs_root:" in scaffold
    assert "runner:" in scaffold
    assert "logging:" in scaffold
    assert "<REQUIRED>" in scaffold
    assert "<OPTIONAL>" in scaffold


def test_write_placeholder_configuration_writes_file(tmp_path: Path) -> None:
    output_path = tmp_path / "nested" / "orchestrator.yaml"

    written_path = write_placeholder_configuration(output_path)

    assert written_path == output_path.resolve()
    assert output_path.exists()
    assert "<REQUIRED>" in output_path.read_text(encoding="utf-8")


def test_write_placeholder_configuration_fails_when_file_exists(tmp_path: Path) -> None:
    output_path = tmp_path / "orchestrator.yaml"
    output_path.write_text("existing", encoding="utf-8")

    with pytest.raises(FileExistsError):
        write_placeholder_configuration(output_path)


def test_unedited_scaffold_is_rejected_by_loader(tmp_path: Path) -> None:
    output_path = write_placeholder_configuration(tmp_path / "orchestrator.yaml")

    with pytest.raises(ConfigurationError, match="<REQUIRED>"):
        load_configuration(output_path)
