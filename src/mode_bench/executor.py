"""Subprocess execution with timeouts."""

from __future__ import annotations

import os
import signal
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

# Seconds a terminated child gets to exit before it is killed outright.
_KILL_GRACE_SECONDS = 5.0
_POSIX = os.name == "posix"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one subprocess invocation."""
    ok: bool
    exit_code: int | None  # None when the process never started
    stdout: str
    stderr: str
    timed_out: bool
    duration_ms: int
    command: list[str] = field(default_factory=list)
    error_message: str | None = None


class CommandRunner(Protocol):
    def __call__(
        self,
        command: Sequence[str],
        cwd: str | Path,
        timeout_seconds: float,
        env: Mapping[str, str] | None = None,
    ) -> ExecutionResult:
        ...


def run_command(
    command: Sequence[str],
    cwd: str | Path,
    timeout_seconds: float,
    env: Mapping[str, str] | None = None,
) -> ExecutionResult:
    """Run ``command`` without a shell and wait for it, at most ``timeout_seconds``.

    The first element is the executable, the rest are passed through as
    arguments untouched. The child runs in its own process group. On timeout
    the whole group is sent SIGTERM, then SIGKILL, and whatever was written
    before it exited is still returned.
    """
    command = list(command)
    if not command:
        return ExecutionResult(
            ok=False,
            exit_code=None,
            stdout="",
            stderr="",
            timed_out=False,
            duration_ms=0,
            command=command,
            error_message="Command is empty.",
        )

    start = time.monotonic()
    try:
        process = subprocess.Popen(
            command,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            start_new_session=_POSIX,
        )
    except (OSError, ValueError) as e:
        return ExecutionResult(
            ok=False,
            exit_code=None,
            stdout="",
            stderr="",
            timed_out=False,
            duration_ms=_elapsed_ms(start),
            command=command,
            error_message=str(e),
        )

    timed_out = False
    try:
        stdout, stderr = process.communicate(timeout=timeout_seconds)
    except subprocess.TimeoutExpired:
        timed_out = True
        stdout, stderr = _terminate(process)

    exit_code = process.returncode
    return ExecutionResult(
        ok=not timed_out and exit_code == 0,
        exit_code=exit_code,
        stdout=stdout or "",
        stderr=stderr or "",
        timed_out=timed_out,
        duration_ms=_elapsed_ms(start),
        command=command,
    )


def _terminate(process: subprocess.Popen[str]) -> tuple[str, str]:
    """Stop a timed-out child and its process group, then drain what they wrote."""
    _signal_group(process, signal.SIGTERM)
    try:
        return process.communicate(timeout=_KILL_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        pass

    _signal_group(process, getattr(signal, "SIGKILL", signal.SIGTERM))
    try:
        return process.communicate(timeout=_KILL_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        # A process outside the group still holds the pipes open.
        for stream in (process.stdout, process.stderr):
            if stream is not None:
                stream.close()
        process.wait()
        return "", ""


def _signal_group(process: subprocess.Popen[str], sig: int) -> None:
    if not _POSIX:
        if sig == signal.SIGTERM:
            process.terminate()
        else:
            process.kill()
        return
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        return


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
