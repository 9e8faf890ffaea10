"""Command line interface entry point."""

from __future__ import annotations

import json
import logging
import signal
import sys
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import click

from simple_test_orchestrator.configuration import (
    DEFAULT_CONFIG_FILENAME,
    Configuration,
    ConfigurationError,
    load_configuration,
    write_placeholder_configuration,
)
from simple_test_orchestrator.environment_resolution import EnvironmentResolutionError
from simple_test_orchestrator.manifest_discovery import DiscoveryError
from simple_test_orchestrator.parameter_binding import ParameterBindingError
from simple_test_orchestrator.process_execution import CancellationToken, RunStatus
from simple_test_orchestrator.run_execution import (
    RunRequest,
    RunRequestError,
    RunTargetKind,
    TestOrchestrationEngine,
)
from simple_test_orchestrator.run_storage import read_run_index

_CONFIG_OPTION_HELP = "Path to the YAML/JSON engine configuration file"


class CliError(Exception):
    """Custom CLI error."""


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="simple-test-orchestrator")
@click.option(
    "--log-level",
    "log_level",
    required=False,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Override the configured logging level",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """Manifest-driven local test orchestration engine."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level


@cli.command(name="generate-config")
@click.option(
    "--output",
    "output_path",
    required=False,
    default=DEFAULT_CONFIG_FILENAME,
    show_default=True,
    type=click.Path(path_type=str),
    help="Path to the YAML engine configuration template to write",
)
def generate_config(output_path: str) -> None:
    """Generate a placeholder YAML engine configuration with guidance comments."""
    try:
        resolved_output = write_placeholder_configuration(output_path)
    except (FileExistsError, OSError) as exc:
        raise CliError(str(exc)) from exc
    click.echo(str(resolved_output))


@cli.command(name="discover")
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(path_type=str),
    help=_CONFIG_OPTION_HELP,
)
@click.pass_context
def discover(ctx: click.Context, config_path: str) -> None:
    """Validate every manifest and list the discovered test cases, suites and plans."""
    engine = TestOrchestrationEngine(_load(ctx, config_path))
    try:
        result = engine.discover()
    except DiscoveryError as exc:
        _echo_discovery_issues(exc)
        raise CliError(str(exc)) from exc
    for label, entries in (
        ("testCase", result.test_cases),
        ("suite", result.test_suites),
        ("plan", result.test_plans),
    ):
        for identity in sorted(entries):
            click.echo(f"{label}\t{identity}")


@cli.command(name="run")
@click.argument("kind", type=click.Choice(["testCase", "suite", "plan"], case_sensitive=False))
@click.argument("target")
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(path_type=str),
    help=_CONFIG_OPTION_HELP,
)
@click.option(
    "--input",
    "inputs",
    multiple=True,
    metavar="NAME=VALUE",
    help="Test case input; VALUE is parsed as JSON when possible",
)
@click.option(
    "--node-input",
    "node_inputs",
    multiple=True,
    metavar="NODE.NAME=VALUE",
    help="Suite node input override; VALUE is parsed as JSON when possible",
)
@click.option(
    "--env",
    "env_overrides",
    multiple=True,
    metavar="KEY=VALUE",
    help="Run-time environment override",
)
@click.option(
    "--plan-context",
    "plan_context",
    required=False,
    metavar="ID@VERSION",
    help="Run a suite with the environment of this plan",
)
@click.pass_context
def run_target(  # pylint: disable=too-many-arguments
    ctx: click.Context,
    kind: str,
    target: str,
    config_path: str,
    inputs: tuple[str, ...],
    node_inputs: tuple[str, ...],
    env_overrides: tuple[str, ...],
    plan_context: str | None,
) -> None:
    """Run a test case, suite or plan identified by ID@VERSION."""
    request = RunRequest(
        kind=RunTargetKind.from_name(kind),
        target=target,
        case_inputs=dict(_parse_pair(item, "--input", parse_json=True) for item in inputs),
        node_overrides=_parse_node_inputs(node_inputs),
        environment_overrides=dict(_parse_pair(item, "--env") for item in env_overrides),
        plan_context=plan_context,
    )
    engine = TestOrchestrationEngine(_load(ctx, config_path))
    cancellation = CancellationToken()
    try:
        with _cancel_on_interrupt(cancellation):
            outcome = engine.run(request, cancellation)
    except DiscoveryError as exc:
        _echo_discovery_issues(exc)
        raise CliError(str(exc)) from exc
    except (RunRequestError, ParameterBindingError, EnvironmentResolutionError) as exc:
        raise CliError(f"{exc.code}: {exc}") from exc
    except OSError as exc:
        raise CliError(str(exc)) from exc
    click.echo(f"{outcome.run_id}\t{outcome.status.value}\t{outcome.run_folder}")
    if outcome.status is not RunStatus.PASSED:
        raise CliError(f"Run {outcome.run_id} finished with status {outcome.status.value}.")


@cli.command(name="history")
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(path_type=str),
    help=_CONFIG_OPTION_HELP,
)
@click.option(
    "--limit",
    "limit",
    required=False,
    default=20,
    show_default=True,
    type=click.IntRange(min=1),
    help="Number of most recent index entries to show",
)
@click.pass_context
def history(ctx: click.Context, config_path: str, limit: int) -> None:
    """List the most recent runs recorded in the run index."""
    configuration = _load(ctx, config_path)
    entries = list(read_run_index(configuration.runs_root))
    for entry in entries[-limit:]:
        document = entry.to_document()
        subject = next(
            (
                f"{document[f'{prefix}Id']}@{document[f'{prefix}Version']}"
                for prefix in ("test", "suite", "plan")
                if f"{prefix}Id" in document
            ),
            "-",
        )
        click.echo(
            "\t".join(
                (entry.run_id, entry.run_type.value, subject, entry.status, entry.start_time)
            )
        )


def _load(ctx: click.Context, config_path: str) -> Configuration:
    try:
        configuration = load_configuration(config_path)
    except ConfigurationError as exc:
        raise CliError(str(exc)) from exc
    level = (ctx.obj or {}).get("log_level") or configuration.logging.level
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return configuration


def _echo_discovery_issues(error: DiscoveryError) -> None:
    for issue in error.issues:
        location = f" [{issue.path}]" if issue.path else ""
        reason = f" ({issue.reason})" if issue.reason else ""
        click.echo(f"{issue.code}{reason}: {issue.message}{location}", err=True)


def _parse_pair(item: str, option: str, *, parse_json: bool = False) -> tuple[str, Any]:
    name, separator, raw = item.partition("=")
    if not separator or not name.strip():
        raise click.BadParameter(f"expected NAME=VALUE, got '{item}'", param_hint=option)
    if not parse_json:
        return name.strip(), raw
    try:
        return name.strip(), json.loads(raw)
    except ValueError:
        return name.strip(), raw


def _parse_node_inputs(items: Sequence[str]) -> dict[str, dict[str, Any]]:
    overrides: dict[str, dict[str, Any]] = {}
    for item in items:
        qualified, value = _parse_pair(item, "--node-input", parse_json=True)
        node_id, separator, name = qualified.rpartition(".")
        if not separator or not node_id or not name:
            raise click.BadParameter(
                f"expected NODE.NAME=VALUE, got '{item}'", param_hint="--node-input"
            )
        overrides.setdefault(node_id, {})[name] = value
    return overrides


@contextmanager
def _cancel_on_interrupt(cancellation: CancellationToken) -> Iterator[None]:
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handle(_signum: int, _frame: Any) -> None:
        click.echo("Cancelling run...", err=True)
        cancellation.cancel()

    previous = signal.signal(signal.SIGINT, _handle)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for console_scripts wiring."""
    argv = argv if argv is not None else sys.argv[1:]
    try:
        cli.main(args=list(argv), standalone_mode=False)
    except CliError as exc:
        click.echo(str(exc), err=True)
        return 1
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except click.Abort:
        click.echo("Aborted.", err=True)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
