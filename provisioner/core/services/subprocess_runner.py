"""
Core subprocess runner.

The SINGLE PLACE where ``subprocess.run`` is called for provisioning
commands.  Adapters receive a runner with this signature and tests
substitute a recording fake.

The runner never raises: timeouts and missing binaries are reported
in the returned ``CommandResult``.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

# Keep the tail of long outputs (build logs can be megabytes)
OUTPUT_TAIL = 8000

# Seconds a timed-out command gets between SIGTERM and SIGKILL
KILL_GRACE_SECONDS = 5


@dataclass
class CommandResult:
    """Outcome of one subprocess invocation."""

    argv: list[str]
    exit_status: int | None = None     # None = never exited (timeout, not found)
    stdout: str = ""
    stderr: str = ""
    elapsed_ms: int = 0
    timed_out: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class CommandRunner(Protocol):
    def __call__(
        self,
        argv: list[str],
        *,
        cwd: str | None = None,
        timeout: int = 1800,
        input_text: str | None = None,
    ) -> CommandResult: ...


def _tail(text: str | None) -> str:
    if not text:
        return ""
    return text[-OUTPUT_TAIL:]


def run_command(
    argv: list[str],
    *,
    cwd: str | None = None,
    timeout: int = 1800,
    input_text: str | None = None,
) -> CommandResult:
    """Run a command to completion and capture its output.

    The command gets its own session, so a timeout terminates the whole
    process group (the ``sudo`` wrapper and whatever it started), not
    just the direct child.

    Args:
        argv: Full command list, already wrapped for identity/privilege.
        cwd: Working directory for the command.
        timeout: Seconds before the command is killed.
        input_text: Text piped to stdin (e.g. answers to an installer).

    Returns:
        CommandResult.  ``exit_status`` is None when the command never
        produced one.
    """
    logger.debug("Executing: %s (cwd=%s, timeout=%ss)", argv, cwd, timeout)
    start = time.monotonic()
    try:
        proc = subprocess.Popen(
            argv,
            cwd=cwd,
            stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            start_new_session=True,
        )
    except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
        return CommandResult(
            argv=argv,
            elapsed_ms=int((time.monotonic() - start) * 1000),
            error=f"Cannot execute {argv[0]}: {e}",
        )
    except OSError as e:
        logger.exception("Subprocess error: %s", argv)
        return CommandResult(argv=argv, error=f"Command execution error: {e}")

    try:
        stdout, stderr = proc.communicate(input=input_text, timeout=timeout)
    except subprocess.TimeoutExpired:
        stdout, _ = _terminate_group(proc)
        return CommandResult(
            argv=argv,
            stdout=_tail(stdout),
            elapsed_ms=int((time.monotonic() - start) * 1000),
            timed_out=True,
            error=f"Command timed out after {timeout}s",
        )

    return CommandResult(
        argv=argv,
        exit_status=proc.returncode,
        stdout=_tail(stdout).strip(),
        stderr=_tail(stderr).strip(),
        elapsed_ms=int((time.monotonic() - start) * 1000),
    )


def _signal_group(proc: subprocess.Popen, sig: int) -> None:
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        pass
    except PermissionError:
        # Group members run as another user; sudo relays signals to its child
        proc.send_signal(sig)


def _terminate_group(proc: subprocess.Popen) -> tuple[str, str]:
    """SIGTERM the process group, then SIGKILL it after a grace period."""
    _signal_group(proc, signal.SIGTERM)
    try:
        return proc.communicate(timeout=KILL_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        logger.warning("Process group %d ignored SIGTERM; killing", proc.pid)
    _signal_group(proc, signal.SIGKILL)
    try:
        return proc.communicate(timeout=KILL_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        logger.error("Process group %d still holds its output pipes", proc.pid)
        return "", ""


def run_attached(argv: list[str], *, cwd: str | None = None) -> int:
    """Run a command with the terminal's stdin/stdout/stderr.

    Used for interactive commands (``provisioner exec``).  No timeout.

    Returns:
        The command's exit status; 127 if it could not be started.
    """
    logger.debug("Executing attached: %s (cwd=%s)", argv, cwd)
    try:
        return subprocess.run(argv, cwd=cwd).returncode
    except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
        logger.error("Cannot execute %s: %s", argv[0], e)
        return 127
