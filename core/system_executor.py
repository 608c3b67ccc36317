"""Execution engine: run an allow-listed command as a bounded child process."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from utils.constants import DEFAULT_EXEC_TIMEOUT, DEFAULT_MAX_EXECUTION_TIME
from utils.helpers import format_duration, positive_int

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = -1
SPAWN_FAILURE_EXIT_CODE = -2

# How long to wait for pipe readers once the child is gone.
_DRAIN_TIMEOUT = 1.0


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    NON_ZERO_EXIT = "non_zero_exit"
    TIMEOUT = "timeout"
    SPAWN_FAILURE = "spawn_failure"


@dataclass
class ExecutionResult:
    outcome: OutcomeKind
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        """True when the process ran to exit, whatever its exit status."""
        return self.outcome in (OutcomeKind.SUCCESS, OutcomeKind.NON_ZERO_EXIT)

    @property
    def execution_time(self) -> str:
        return format_duration(self.duration_seconds)


class CommandExecutor:
    """Spawn argv directly (never through a shell) with a clamped deadline.

    Exactly one attempt is made per call; retries are the caller's business.
    """

    def __init__(self, config: Optional[dict] = None):
        cfg = config or {}
        self.max_execution_time = positive_int(cfg.get("max_execution_time"), DEFAULT_MAX_EXECUTION_TIME)
        self.default_timeout = positive_int(cfg.get("default_timeout"), DEFAULT_EXEC_TIMEOUT)

    def resolve_timeout(self, requested: Optional[int]) -> int:
        """Clamp the caller's timeout to the configured ceiling."""
        try:
            n = int(requested) if requested is not None else 0
        except (TypeError, ValueError):
            n = 0
        if n <= 0:
            n = self.default_timeout
        return min(n, self.max_execution_time)

    async def execute(self, command: str, args: Sequence[str], timeout_seconds: int) -> ExecutionResult:
        argv: List[str] = [command, *args]
        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            return ExecutionResult(
                outcome=OutcomeKind.SPAWN_FAILURE,
                exit_code=SPAWN_FAILURE_EXIT_CODE,
                duration_seconds=time.monotonic() - start,
                error=f"command execution failed: {e}",
            )

        stdout_task = asyncio.create_task(process.stdout.read())
        stderr_task = asyncio.create_task(process.stderr.read())
        timed_out = False
        wait_error: Optional[BaseException] = None
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            timed_out = True
            await self._kill(process)
        except asyncio.CancelledError:
            await self._kill(process)
            stdout_task.cancel()
            stderr_task.cancel()
            raise
        except OSError as e:
            wait_error = e
            await self._kill(process)
        duration = time.monotonic() - start

        stdout = await self._collect(stdout_task)
        stderr = await self._collect(stderr_task)

        if timed_out:
            logger.warning("Command timed out after %ss: %s", timeout_seconds, command)
            return ExecutionResult(
                outcome=OutcomeKind.TIMEOUT,
                exit_code=TIMEOUT_EXIT_CODE,
                stdout=stdout,
                stderr=stderr,
                duration_seconds=duration,
                error="command execution timed out",
            )
        if wait_error is not None:
            return ExecutionResult(
                outcome=OutcomeKind.SPAWN_FAILURE,
                exit_code=SPAWN_FAILURE_EXIT_CODE,
                stdout=stdout,
                stderr=stderr,
                duration_seconds=duration,
                error=f"command execution failed: {wait_error}",
            )

        returncode = int(process.returncode)
        if returncode < 0:
            # Killed by a signal from outside; report the shell convention so the
            # value never collides with the -1/-2 sentinels.
            returncode = 128 + (-returncode)
        return ExecutionResult(
            outcome=OutcomeKind.SUCCESS if returncode == 0 else OutcomeKind.NON_ZERO_EXIT,
            exit_code=returncode,
            stdout=stdout,
            stderr=stderr,
            duration_seconds=duration,
        )

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                # Child runs in its own session; take its descendants down too.
                os.killpg(process.pid, signal.SIGKILL)
            except (ProcessLookupError, PermissionError):
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
        try:
            await asyncio.wait_for(process.wait(), timeout=_DRAIN_TIMEOUT)
        except asyncio.TimeoutError:
            logger.error("Child pid=%s did not exit after SIGKILL", process.pid)

    @staticmethod
    async def _collect(task: "asyncio.Task[bytes]") -> str:
        try:
            data = await asyncio.wait_for(task, timeout=_DRAIN_TIMEOUT)
        except asyncio.TimeoutError:
            return ""
        return data.decode("utf-8", errors="replace").strip()
