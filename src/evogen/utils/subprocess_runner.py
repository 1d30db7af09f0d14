"""Subprocess runner with timeout, output capture and cancellation-safe cleanup.

Every external tool evogen drives (``javac``, ``java``, ``mvn``) goes through
:func:`run_subprocess`.  A child process never outlives the call: it is killed
when the timeout expires and when the awaiting task is cancelled.  Callers that
need to terminate children from the outside (the scheduler on shutdown) pass a
:class:`ProcessTracker`.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


@dataclass
class SubprocessResult:
    """Result of subprocess execution."""

    returncode: int
    """Exit code of the process."""

    stdout: str
    """Standard output captured from the process."""

    stderr: str
    """Standard error captured from the process."""

    success: bool
    """True if returncode is 0."""

    timed_out: bool = False
    """True if the process was terminated due to timeout."""

    duration_ms: float = 0.0
    """Actual duration of execution in milliseconds."""

    @property
    def output(self) -> str:
        """Combined stdout and stderr, in that order."""
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr


class ProcessTracker:
    """Registry of live child processes owned by one job.

    The scheduler creates one tracker per unit so that a cancellation can
    forcibly terminate the job's external processes instead of merely
    abandoning the coroutine waiting on them.
    """

    def __init__(self) -> None:
        self._processes: set[asyncio.subprocess.Process] = set()

    def add(self, process: asyncio.subprocess.Process) -> None:
        self._processes.add(process)

    def discard(self, process: asyncio.subprocess.Process) -> None:
        self._processes.discard(process)

    def kill_all(self) -> int:
        """Kill every tracked process that is still running.

        Returns:
            Number of processes a kill signal was sent to.
        """
        killed = 0
        for process in list(self._processes):
            if process.returncode is not None:
                continue
            with contextlib.suppress(ProcessLookupError):
                process.kill()
                killed += 1
        if killed:
            logger.debug("Killed %d tracked child process(es)", killed)
        return killed

    def __len__(self) -> int:
        return len(self._processes)


async def _kill_and_reap(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        return  # Process already terminated
    await process.wait()


async def run_subprocess(  # noqa: PLR0913
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float = 120.0,
    env: dict[str, str] | None = None,
    check: bool = False,
    tracker: ProcessTracker | None = None,
) -> SubprocessResult:
    """Execute a command in a subprocess with timeout and error handling.

    Args:
        command: Command and arguments as a sequence (e.g. ``['javac', '-cp', cp, file]``).
        cwd: Working directory for the subprocess. Defaults to current directory.
        timeout: Maximum seconds to wait for completion. Defaults to 120.
        env: Extra environment variables, merged over the current environment.
        check: If True, raise SubprocessError on non-zero exit code.
        tracker: Optional tracker the live process is registered with.

    Returns:
        SubprocessResult with exit code, output, and metadata.

    Raises:
        SubprocessError: If the command cannot be launched, or check=True and
            the command returns a non-zero exit code.
        ValueError: If command is empty or timeout is invalid.
    """
    if not command:
        raise ValueError("Command cannot be empty")

    if timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")

    work_dir = cwd.resolve() if cwd else Path.cwd()
    if not work_dir.exists():
        raise ValueError(f"Working directory does not exist: {work_dir}")

    full_env = {**os.environ, **env} if env else None

    logger.debug(
        "Running subprocess: %s (cwd=%s, timeout=%s)",
        " ".join(str(c) for c in command),
        work_dir,
        timeout,
    )

    start_time = time.perf_counter()
    timed_out = False

    try:
        process = await asyncio.create_subprocess_exec(
            *(str(c) for c in command),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=work_dir,
            env=full_env,
        )
    except FileNotFoundError as exc:
        logger.error("Command not found: %s", command[0])
        raise SubprocessError(
            f"Command not found: {command[0]}",
            result=SubprocessResult(returncode=-1, stdout="", stderr=str(exc), success=False),
        ) from exc
    except OSError as exc:
        logger.exception("Failed to launch subprocess %s", command[0])
        raise SubprocessError(
            f"Subprocess execution failed: {exc}",
            result=SubprocessResult(returncode=-1, stdout="", stderr=str(exc), success=False),
        ) from exc

    if tracker is not None:
        tracker.add(process)

    try:
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except TimeoutError:
            logger.warning("Subprocess %s timed out after %s seconds", command[0], timeout)
            timed_out = True
            await _kill_and_reap(process)
            stdout_bytes = b""
            stderr_bytes = b"Process timed out and was killed"
        except asyncio.CancelledError:
            logger.debug("Subprocess %s cancelled, killing pid %s", command[0], process.pid)
            await asyncio.shield(_kill_and_reap(process))
            raise
    finally:
        if tracker is not None:
            tracker.discard(process)

    duration_ms = (time.perf_counter() - start_time) * 1000

    stdout = stdout_bytes.decode("utf-8", errors="replace")
    stderr = stderr_bytes.decode("utf-8", errors="replace")
    returncode = process.returncode if process.returncode is not None else -1
    if timed_out and returncode == 0:
        returncode = -1

    result = SubprocessResult(
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
        success=(returncode == 0 and not timed_out),
        timed_out=timed_out,
        duration_ms=duration_ms,
    )

    logger.debug(
        "Subprocess completed: returncode=%d, duration=%.2fms, success=%s",
        returncode,
        duration_ms,
        result.success,
    )

    if check and not result.success:
        raise SubprocessError(
            f"Command failed with exit code {returncode}: {' '.join(str(c) for c in command)}",
            result=result,
        )

    return result


class SubprocessError(Exception):
    """Exception raised when subprocess execution fails."""

    def __init__(self, message: str, result: SubprocessResult) -> None:
        """Initialize with error message and result.

        Args:
            message: Error description.
            result: The SubprocessResult from the failed execution.
        """
        super().__init__(message)
        self.result = result
