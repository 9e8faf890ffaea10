"""Script process runner tests against real Python child processes."""

from __future__ import annotations

import os
import sys
import textwrap
import threading
import time
from pathlib import Path

import pytest
from simple_test_orchestrator.process_execution import (
    CancellationToken,
    ErrorSource,
    ErrorType,
    PosixProcessTreeTerminator,
    RunStatus,
    ScriptInvocation,
    ScriptProcessRunner,
    runtime_environment,
)


def _script(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "run.py"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


def _invocation(tmp_path: Path, script: Path, **overrides: object) -> ScriptInvocation:
    values: dict = {
        "interpreter": sys.executable,
        "script_path": script,
        "working_dir": tmp_path,
        "stdout_path": tmp_path / "stdout.log",
        "stderr_path": tmp_path / "stderr.log",
        "timeout_seconds": 30,
        "environment": dict(os.environ),
    }
    values.update(overrides)
    return ScriptInvocation(**values)


def _runner() -> ScriptProcessRunner:
    return ScriptProcessRunner(poll_interval_seconds=0.05)


@pytest.mark.parametrize(
    ("exit_code", "status"),
    [(0, RunStatus.PASSED), (1, RunStatus.FAILED), (2, RunStatus.ERROR), (7, RunStatus.ERROR)],
)
def test_exit_code_maps_to_status(tmp_path: Path, exit_code: int, status: RunStatus) -> None:
    script = _script(tmp_path, f"raise SystemExit({exit_code})\n")

    outcome = _runner().run(_invocation(tmp_path, script))

    assert outcome.status is status
    assert outcome.exit_code == exit_code
    assert outcome.end_time >= outcome.start_time
    if status is RunStatus.ERROR:
        assert outcome.error is not None
        assert outcome.error.source is ErrorSource.SCRIPT
    else:
        assert outcome.error is None


def test_streams_stdout_and_stderr_and_passes_named_arguments(tmp_path: Path) -> None:
    script = _script(
        tmp_path,
        """
        import os
        import sys
        print("args:", sys.argv[1:])
        print("cwd:", os.getcwd())
        print("oops", file=sys.stderr)
        """,
    )
    work = tmp_path / "work"
    work.mkdir()

    outcome = _runner().run(
        _invocation(
            tmp_path, script, working_dir=work, arguments=("--host", 'lab "one"', "--count", "3")
        )
    )

    stdout = (tmp_path / "stdout.log").read_text(encoding="utf-8")
    assert outcome.status is RunStatus.PASSED
    assert "args: ['--host', 'lab \"one\"', '--count', '3']" in stdout
    assert f"cwd: {work}" in stdout or f"cwd: {work.resolve()}" in stdout
    assert (tmp_path / "stderr.log").read_text(encoding="utf-8").strip() == "oops"


def test_timeout_keeps_partial_output_and_kills_the_process(tmp_path: Path) -> None:
    script = _script(
        tmp_path,
        """
        import os
        import time
        print("pid", os.getpid(), flush=True)
        print("started", flush=True)
        time.sleep(60)
        print("never")
        """,
    )
    runner = ScriptProcessRunner(
        PosixProcessTreeTerminator(grace_seconds=1.0) if os.name == "posix" else None,
        poll_interval_seconds=0.05,
    )

    started = time.monotonic()
    outcome = runner.run(_invocation(tmp_path, script, timeout_seconds=1))

    assert time.monotonic() - started < 30
    assert outcome.status is RunStatus.TIMEOUT
    assert outcome.exit_code is None
    assert outcome.error is not None
    assert outcome.error.type is ErrorType.TIMEOUT
    assert outcome.error.source is ErrorSource.RUNNER
    stdout = (tmp_path / "stdout.log").read_text(encoding="utf-8")
    assert "started" in stdout
    assert "never" not in stdout
    if os.name == "posix":
        pid = int(stdout.split()[1])
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)


def _is_running(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    status_path = Path("/proc") / str(pid) / "status"
    if status_path.exists():
        for line in status_path.read_text(encoding="utf-8").splitlines():
            if line.startswith("State:"):
                return "Z" not in line.split()[1]
    return True


@pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX only")
def test_timeout_terminates_descendant_processes(tmp_path: Path) -> None:
    script = _script(
        tmp_path,
        """
        import subprocess
        import sys
        import time
        child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
        print("grandchild", child.pid, flush=True)
        time.sleep(60)
        """,
    )
    runner = ScriptProcessRunner(
        PosixProcessTreeTerminator(grace_seconds=1.0), poll_interval_seconds=0.05
    )

    outcome = runner.run(_invocation(tmp_path, script, timeout_seconds=2))

    assert outcome.status is RunStatus.TIMEOUT
    stdout = (tmp_path / "stdout.log").read_text(encoding="utf-8")
    grandchild_pid = int(stdout.split()[1])
    deadline = time.monotonic() + 5
    while _is_running(grandchild_pid) and time.monotonic() < deadline:
        time.sleep(0.05)
    assert not _is_running(grandchild_pid)


def test_launch_failure_is_a_runner_error(tmp_path: Path) -> None:
    script = _script(tmp_path, "raise SystemExit(0)\n")

    outcome = _runner().run(
        _invocation(tmp_path, script, interpreter=str(tmp_path / "no-such-python"))
    )

    assert outcome.status is RunStatus.ERROR
    assert outcome.exit_code is None
    assert outcome.error is not None
    assert outcome.error.type is ErrorType.RUNNER_ERROR
    assert outcome.error.source is ErrorSource.RUNNER


def test_cancellation_aborts_the_running_script(tmp_path: Path) -> None:
    script = _script(tmp_path, "import time\ntime.sleep(60)\n")
    cancellation = CancellationToken()
    timer = threading.Timer(0.5, cancellation.cancel)
    timer.start()
    try:
        outcome = _runner().run(_invocation(tmp_path, script), cancellation)
    finally:
        timer.cancel()

    assert outcome.status is RunStatus.ABORTED
    assert outcome.error is not None
    assert outcome.error.type is ErrorType.ABORTED


def test_runtime_environment_prepends_module_search_path(tmp_path: Path) -> None:
    environment = runtime_environment({"pythonpath": "/existing"}, tmp_path)

    assert environment["PYTHONUNBUFFERED"] == "1"
    assert environment["pythonpath"] == os.pathsep.join([str(tmp_path), "/existing"])
    assert "PYTHONPATH" not in environment
