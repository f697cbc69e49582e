"""Subprocess execution with Result-based error handling.

Every external toolchain (rustup, trunk, cargo tauri, gh) is invoked through
`run`, which captures output, enforces a per-call timeout and honours a
shared `CancelToken` so that an aborted release run terminates its children
instead of leaving builds running in the background.

Usage:
    result = run(["cargo", "tauri", "build"], cwd=work_dir, timeout=3600, merge_output=True)
    match result:
        case Ok(output):
            ...
        case Err(error):
            print(error.tail(40))
"""

from __future__ import annotations

import os
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from kr.core.result import Err, Ok, Result

__all__ = ["CancelToken", "CommandRunner", "DefaultCommandRunner", "ProcessError", "run"]

_POLL_INTERVAL_SECONDS = 0.2

# Output still buffered after the process group is killed.
_DRAIN_TIMEOUT_SECONDS = 2.0

# Toolchains fork whole trees (cargo, rustc, gradle daemons); each child
# leads its own process group so the tree can be killed as a unit.
if sys.platform == "win32":
    _GROUP_KWARGS: dict[str, Any] = {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
else:
    _GROUP_KWARGS = {"start_new_session": True}


class CancelToken:
    """Process-wide abort flag shared by the orchestrator and its workers."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: Exit code of the process (-1 if it never ran to completion).
        stdout: Standard output, or combined output when merged.
        stderr: Standard error (or a reason when the process was killed).
        timed_out: The process was killed because it exceeded its timeout.
        cancelled: The process was killed because the run was cancelled.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False
    cancelled: bool = False

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        if self.timed_out:
            return f"{cmd_str} timed out"
        if self.cancelled:
            return f"{cmd_str} cancelled"
        return f"{cmd_str} failed (exit {self.returncode})"

    def tail(self, lines: int) -> str:
        """Return the last `lines` lines of captured output."""
        combined = "\n".join(
            part.rstrip("\n") for part in (self.stdout, self.stderr) if part.strip()
        )
        return "\n".join(combined.rstrip().splitlines()[-lines:])


def _kill_tree(proc: subprocess.Popen[str]) -> None:
    if sys.platform == "win32":
        subprocess.run(
            ["taskkill", "/F", "/T", "/PID", str(proc.pid)],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    else:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass  # group already gone
    proc.kill()


def _kill(
    proc: subprocess.Popen[str],
    cmd: list[str],
    *,
    reason: str,
    timed_out: bool = False,
    cancelled: bool = False,
) -> Err[ProcessError]:
    _kill_tree(proc)
    try:
        stdout, _ = proc.communicate(timeout=_DRAIN_TIMEOUT_SECONDS)
    except subprocess.TimeoutExpired:
        # A grandchild left the group and still holds the pipe.
        stdout = ""
        proc.wait()
    return Err(
        ProcessError(
            command=tuple(cmd),
            returncode=-1,
            stdout=stdout or "",
            stderr=reason,
            timed_out=timed_out,
            cancelled=cancelled,
        )
    )


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
    cancel: CancelToken | None = None,
    merge_output: bool = False,
) -> Result[str, ProcessError]:
    """Execute a command and return its stdout or an error.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Environment variables (uses current env if None).
        timeout: Maximum seconds to wait (None for no limit).
        cancel: Token checked while waiting; the process is killed once set.
        merge_output: Interleave stderr into stdout (build logs).

    Returns:
        Ok(stdout) on success, Err(ProcessError) on failure, timeout or cancel.
    """
    if cancel is not None and cancel.cancelled:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout="",
                stderr="Command cancelled before start",
                cancelled=True,
            )
        )

    try:
        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd),
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if merge_output else subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            **_GROUP_KWARGS,
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    deadline = None if timeout is None else time.monotonic() + timeout
    while True:
        wait_for = _POLL_INTERVAL_SECONDS
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return _kill(
                    proc, cmd, reason=f"Command timed out after {timeout}s", timed_out=True
                )
            wait_for = min(wait_for, remaining)

        try:
            # communicate() keeps buffered output across TimeoutExpired retries.
            stdout, stderr = proc.communicate(timeout=wait_for)
            break
        except subprocess.TimeoutExpired:
            if cancel is not None and cancel.cancelled:
                return _kill(proc, cmd, reason="Command cancelled", cancelled=True)

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=proc.returncode,
                stdout=stdout or "",
                stderr=stderr or "",
            )
        )

    return Ok(stdout or "")


class CommandRunner(Protocol):
    """Protocol for running toolchain commands.

    Services take a runner instead of calling `run` directly so that tests
    can script toolchain behaviour without spawning processes.
    """

    def run(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
        merge_output: bool = False,
    ) -> Result[str, ProcessError]: ...


class DefaultCommandRunner:
    """Runner backed by real subprocesses."""

    def run(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
        merge_output: bool = False,
    ) -> Result[str, ProcessError]:
        return run(cmd, cwd, env, timeout=timeout, cancel=cancel, merge_output=merge_output)
