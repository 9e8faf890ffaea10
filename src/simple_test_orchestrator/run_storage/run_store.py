"""Run store service: run folders, input snapshots, results and index appends."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from simple_test_orchestrator.parameter_binding import REDACTED_VALUE, BoundParameters

from .event_log import EventLog
from .run_folders import CASE_RUN_PREFIX, GROUP_RUN_PREFIX, allocate_run_folder
from .run_index import append_index_entry
from .run_records import (
    ChildRunRecord,
    GroupResult,
    GroupRunContext,
    RunContext,
    RunType,
    TestCaseResult,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def write_json(path: Path, document: Any) -> None:
    path.write_text(json.dumps(document, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def redact_environment(
    environment: Mapping[str, str], secret_variables: tuple[str, ...]
) -> dict[str, str]:
    """Return a copy of ``environment`` with secret-backed variables masked."""
    folded = {name.casefold() for name in secret_variables}
    return {
        key: REDACTED_VALUE if key.casefold() in folded else value
        for key, value in environment.items()
    }


class RunStore:
    """Own the runs root: allocate folders, snapshot inputs, persist results."""

    def __init__(self, runs_root: Path | str, clock: Callable[[], datetime] = _utc_now) -> None:
        self._runs_root = Path(runs_root)
        self._clock = clock
        self._children_lock = threading.Lock()

    @property
    def runs_root(self) -> Path:
        return self._runs_root

    def now(self) -> datetime:
        return self._clock()

    def create_run(
        self,
        manifest_document: Mapping[str, Any],
        parameters: BoundParameters,
        environment: Mapping[str, str],
    ) -> RunContext:
        """Allocate a test case run folder and write its input snapshots.

        Snapshots are written before the script starts and never rewritten.
        Secret parameter values are redacted in ``params.json`` and the
        variables they were read from are redacted in ``env.json``.
        """
        run_id, folder = allocate_run_folder(self._runs_root, CASE_RUN_PREFIX, self._clock())
        context = RunContext(
            run_id=run_id,
            run_folder=folder,
            manifest_path=folder / "manifest.json",
            params_path=folder / "params.json",
            env_path=folder / "env.json",
            events_path=folder / "events.jsonl",
            stdout_path=folder / "stdout.log",
            stderr_path=folder / "stderr.log",
            result_path=folder / "result.json",
            artifacts_path=folder / "artifacts",
        )
        context.artifacts_path.mkdir()
        write_json(context.manifest_path, dict(manifest_document))
        write_json(context.params_path, parameters.snapshot())
        write_json(context.env_path, redact_environment(environment, parameters.secret_variables))
        logger.debug("Created run folder %s", folder)
        return context

    def write_result(self, context: RunContext, result: TestCaseResult) -> None:
        """Persist ``result.json`` and append the run to the index."""
        write_json(context.result_path, result.to_document())
        append_index_entry(self._runs_root, result.to_index_entry())
        logger.info("Run %s finished with %s", result.run_id, result.status.value)

    def create_group_run(
        self,
        run_type: RunType,
        manifest_document: Mapping[str, Any],
        environment: Mapping[str, str],
        run_request: Mapping[str, Any],
        controls: Mapping[str, Any] | None = None,
        secret_variables: tuple[str, ...] = (),
    ) -> GroupRunContext:
        """Allocate a ``G-`` folder for a suite or plan run and snapshot its inputs."""
        run_id, folder = allocate_run_folder(self._runs_root, GROUP_RUN_PREFIX, self._clock())
        context = GroupRunContext(
            run_id=run_id,
            run_type=run_type,
            run_folder=folder,
            manifest_path=folder / "manifest.json",
            controls_path=folder / "controls.json",
            environment_path=folder / "environment.json",
            run_request_path=folder / "runRequest.json",
            children_path=folder / "children.jsonl",
            events_path=folder / "events.jsonl",
            result_path=folder / "result.json",
        )
        write_json(context.manifest_path, dict(manifest_document))
        if controls is not None:
            write_json(context.controls_path, dict(controls))
        write_json(context.environment_path, redact_environment(environment, secret_variables))
        write_json(context.run_request_path, dict(run_request))
        context.children_path.touch()
        logger.debug("Created group run folder %s", folder)
        return context

    def append_child(self, context: GroupRunContext, child: ChildRunRecord) -> None:
        line = json.dumps(child.to_document(), ensure_ascii=False)
        with self._children_lock, context.children_path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def write_group_result(self, context: GroupRunContext, result: GroupResult) -> None:
        write_json(context.result_path, result.to_document())
        append_index_entry(self._runs_root, result.to_index_entry())
        logger.info(
            "%s run %s finished with %s", result.run_type.value, result.run_id, result.status.value
        )

    def event_log(self, context: RunContext | GroupRunContext) -> EventLog:
        return EventLog(context.events_path, clock=self._clock)
