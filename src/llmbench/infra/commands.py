"""Bounded subprocess execution.

Every external command llmbench runs (hardware enumeration, driver probes,
toolbox management, in-container benchmark binaries) goes through
``run_command``:

- the child gets its own process group (``start_new_session=True``) so the
  whole tree can be signalled with ``os.killpg``
- a wall-clock timeout terminates the group: SIGTERM, a short grace period,
  then SIGKILL
- stdout and stderr are merged and captured up to ``max_output_bytes``;
  a child that writes more is terminated the same way

None of these outcomes raise. They are reported on the returned
``CommandResult`` so callers can turn them into failed measurements or
negative capabilities.
"""

from __future__ import annotations

import contextlib
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass

from loguru import logger

from llmbench.constants import GRACEFUL_SHUTDOWN_TIMEOUT_SEC, MAX_OUTPUT_BYTES

__all__ = ["CommandResult", "run_command"]

_READ_CHUNK_BYTES = 64 * 1024


@dataclass
class CommandResult:
    """Outcome of one bounded command execution."""

    args: list[str]
    returncode: int | None
    output: str
    duration_seconds: float
    timed_out: bool = False
    overflowed: bool = False
    launch_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure_message is None

    @property
    def failure_message(self) -> str | None:
        """Human-readable failure reason, or None for a clean zero exit."""
        if self.launch_error is not None:
            return f"Failed to start {self.args[0]}: {self.launch_error}"
        if self.timed_out:
            return f"Command timed out after {self.duration_seconds:.0f}s: {' '.join(self.args)}"
        if self.overflowed:
            return f"Command output exceeded the capture limit: {' '.join(self.args)}"
        if self.returncode != 0:
            lines = self.output.strip().splitlines()
            detail = f": {lines[-1]}" if lines else ""
            return f"Command failed with exit code {self.returncode}{detail}"
        return None


def _terminate_group(proc: subprocess.Popen[bytes], grace_sec: float) -> None:
    """SIGTERM the process group, then SIGKILL it if still alive after ``grace_sec``.

    The group id equals the leader pid (``start_new_session=True``), and stays
    valid after the leader has been reaped while its children still run.
    """
    pgid = proc.pid
    with contextlib.suppress(ProcessLookupError):
        os.killpg(pgid, signal.SIGTERM)
    try:
        proc.wait(timeout=grace_sec)
        return
    except subprocess.TimeoutExpired:
        logger.debug("Process group {} ignored SIGTERM, sending SIGKILL", pgid)

    with contextlib.suppress(ProcessLookupError):
        os.killpg(pgid, signal.SIGKILL)
    with contextlib.suppress(subprocess.TimeoutExpired):
        proc.wait(timeout=grace_sec)


def run_command(
    cmd: list[str],
    timeout: float | None,
    max_output_bytes: int = MAX_OUTPUT_BYTES,
    env: dict[str, str] | None = None,
    shutdown_grace_sec: float = GRACEFUL_SHUTDOWN_TIMEOUT_SEC,
) -> CommandResult:
    """Run ``cmd`` with a timeout and a bounded output buffer.

    Args:
        cmd: Command and arguments (no shell).
        timeout: Wall-clock limit in seconds. None = no limit.
        max_output_bytes: Maximum combined stdout/stderr bytes retained.
        env: Environment for the child. Defaults to the inherited environment.
        shutdown_grace_sec: Seconds between SIGTERM and SIGKILL on termination.

    Returns:
        CommandResult describing exit status, captured output and any bound
        that was exceeded.
    """
    start = time.perf_counter()
    try:
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            env=env,
            start_new_session=True,
        )
    except OSError as exc:
        logger.debug("Could not launch {}: {}", cmd[0], exc)
        return CommandResult(
            args=list(cmd),
            returncode=None,
            output="",
            duration_seconds=time.perf_counter() - start,
            launch_error=str(exc),
        )

    chunks: list[bytes] = []
    overflow = threading.Event()

    def _drain() -> None:
        size = 0
        assert proc.stdout is not None
        while True:
            try:
                chunk = proc.stdout.read1(_READ_CHUNK_BYTES)
            except (ValueError, OSError):
                # pipe closed by run_command after the join timed out
                break
            if not chunk:
                break
            if overflow.is_set():
                continue
            remaining = max_output_bytes - size
            if len(chunk) > remaining:
                chunks.append(chunk[:remaining])
                overflow.set()
                logger.debug("{} output exceeded {} bytes, terminating", cmd[0], max_output_bytes)
                _terminate_group(proc, shutdown_grace_sec)
                continue
            chunks.append(chunk)
            size += len(chunk)

    reader = threading.Thread(target=_drain, name=f"drain-{proc.pid}", daemon=True)
    reader.start()

    timed_out = False
    try:
        returncode: int | None = proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        timed_out = True
        logger.debug("{} timed out after {}s, terminating process group", cmd[0], timeout)
        _terminate_group(proc, shutdown_grace_sec)
        returncode = proc.poll()

    reader.join(timeout=shutdown_grace_sec + 1)
    if proc.stdout is not None:
        proc.stdout.close()

    return CommandResult(
        args=list(cmd),
        returncode=returncode,
        output=b"".join(chunks).decode("utf-8", errors="replace"),
        duration_seconds=time.perf_counter() - start,
        timed_out=timed_out,
        overflowed=overflow.is_set(),
    )
