"""Asynchronous job runner for backend command lines.

Each submitted command runs in its own shell process. Output is buffered
until the process exits and the completion is delivered once, from the
event loop that submitted the job.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import Any

from dbnbook.executor.base import (
    ERROR_PREFIX,
    CompletionCallback,
    JobResult,
    interpret_output,
)
from dbnbook.models import ExecutionConfig
from dbnbook.utils.logging_config import get_logger, log_exception
from dbnbook.utils.tasks import BackgroundTaskGroup


class JobRunner:
    """Runs shell commands without blocking the event loop.

    There is no queue and no concurrency limit: every submission spawns a
    process immediately. Individual jobs cannot be cancelled or timed out;
    ``shutdown`` kills whatever is still running when the session closes.
    """

    def __init__(self, config: ExecutionConfig | None = None):
        """Initialize job runner.

        Args:
            config: Execution configuration (encoding, shell, command logging)

        """
        self.config = config or ExecutionConfig()
        self.logger = get_logger(__name__)
        self._jobs = BackgroundTaskGroup()
        self._processes: set[asyncio.subprocess.Process] = set()
        self.stats = {
            "jobs_started": 0,
            "jobs_succeeded": 0,
            "jobs_failed": 0,
        }

    @property
    def active_jobs(self) -> int:
        """Number of jobs that have not completed yet."""
        return len(self._jobs)

    def submit(
        self,
        command: str,
        on_complete: CompletionCallback | None = None,
    ) -> asyncio.Task[JobResult]:
        """Start ``command`` in the background.

        Args:
            command: Shell command line
            on_complete: Called exactly once with ``(success, output)`` from
                the event loop when the job finishes. Not called if the job
                is killed by ``shutdown``.

        Returns:
            Task resolving to the JobResult

        """
        task = self._jobs.create(self.run(command))
        if on_complete is not None:
            task.add_done_callback(
                lambda done: self._deliver(done, on_complete),
            )
        return task

    async def run(self, command: str) -> JobResult:
        """Run ``command`` to completion and interpret its output streams."""
        self.stats["jobs_started"] += 1
        if self.config.log_commands:
            self.logger.info("Executing command: %s", command)

        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                executable=self.config.shell,
            )
        except OSError as e:
            self.stats["jobs_failed"] += 1
            self.logger.warning("Failed to start command: %s", e)
            return JobResult(
                success=False,
                output=f"{ERROR_PREFIX}{e}",
                duration=time.monotonic() - start,
            )

        self._processes.add(process)
        try:
            stdout_bytes, stderr_bytes = await process.communicate()
        finally:
            self._processes.discard(process)

        duration = time.monotonic() - start
        stdout = self._decode(stdout_bytes)
        stderr = self._decode(stderr_bytes)
        success, output = interpret_output(stdout, stderr)

        if success:
            self.stats["jobs_succeeded"] += 1
            if process.returncode and not stdout:
                self.logger.warning(
                    "Command exited with code %s and produced no output",
                    process.returncode,
                )
        else:
            self.stats["jobs_failed"] += 1

        self.logger.debug(
            "Command finished (pid=%s, returncode=%s, success=%s, duration=%.3fs)",
            process.pid,
            process.returncode,
            success,
            duration,
        )
        return JobResult(
            success=success,
            output=output,
            returncode=process.returncode,
            duration=duration,
            metadata={"pid": process.pid},
        )

    async def wait(self) -> None:
        """Wait for every submitted job and its completion callback."""
        await self._jobs.wait()

    def _decode(self, data: bytes | None) -> str:
        return (data or b"").decode(self.config.encoding, errors="replace")

    def _deliver(
        self,
        task: asyncio.Task[JobResult],
        on_complete: CompletionCallback,
    ) -> None:
        """Hand a finished job's outcome to its completion callback."""
        if task.cancelled():
            return

        exc = task.exception()
        if exc is not None:
            success, output = False, f"{ERROR_PREFIX}{exc}"
        else:
            result = task.result()
            success, output = result.success, result.output

        try:
            on_complete(success, output)
        except Exception as e:
            log_exception(self.logger, e, "Completion callback failed")

    async def shutdown(self) -> None:
        """Kill running processes and wait for their jobs to wind down."""
        for process in list(self._processes):
            with contextlib.suppress(ProcessLookupError):
                process.kill()

        await self._jobs.cancel_and_wait()

    def get_stats(self) -> dict[str, Any]:
        """Get runner statistics."""
        return {
            **self.stats,
            "active_jobs": self.active_jobs,
        }
