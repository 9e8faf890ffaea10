"""Live progress notifications for callers that display a run while it executes."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from simple_test_orchestrator.manifest_model import Identity
from simple_test_orchestrator.process_execution import RunStatus
from simple_test_orchestrator.run_storage import RunType


@dataclass(frozen=True)
class PlannedNode:
    """One unit of work a run is about to schedule."""

    node_id: str
    identity: Identity
    node_type: RunType
    ref: str | None = None


@dataclass(frozen=True)
class NodeFinished:
    """Final state of one node attempt."""

    node_id: str
    status: RunStatus
    start_time: datetime
    end_time: datetime
    child_run_id: str
    attempt: int = 1
    message: str | None = None

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()


class ExecutionReporter(Protocol):
    """Receives progress for case, suite and plan runs as they happen.

    ``run_id`` is the run that owns the nodes: the case run for a standalone
    test case, otherwise the ``G-`` group run. Calls for parallel suite nodes
    arrive from worker threads.
    """

    def on_run_planned(
        self, run_id: str, run_type: RunType, planned_nodes: Sequence[PlannedNode]
    ) -> None:
        """Called once the run folder exists and its nodes are known."""

    def on_node_started(self, run_id: str, node_id: str) -> None:
        """Called before each node attempt starts."""

    def on_node_finished(self, run_id: str, node: NodeFinished) -> None:
        """Called after each node attempt has a result."""

    def on_run_finished(self, run_id: str, status: RunStatus) -> None:
        """Called after the run's result has been written."""


class NullExecutionReporter:
    """Reporter that ignores every notification."""

    def on_run_planned(
        self, run_id: str, run_type: RunType, planned_nodes: Sequence[PlannedNode]
    ) -> None:
        pass

    def on_node_started(self, run_id: str, node_id: str) -> None:
        pass

    def on_node_finished(self, run_id: str, node: NodeFinished) -> None:
        pass

    def on_run_finished(self, run_id: str, status: RunStatus) -> None:
        pass
