"""Tests for the asynchronous job runner."""

from __future__ import annotations

import asyncio
import logging

import pytest

from dbnbook.executor.base import JobResult, interpret_output
from dbnbook.executor.runner import JobRunner
from dbnbook.models import ExecutionConfig

pytestmark = [pytest.mark.unit, pytest.mark.executor]


@pytest.fixture
def runner():
    """Runner with command logging disabled."""
    return JobRunner(ExecutionConfig(log_commands=False))


class TestInterpretOutput:
    """Stream-based success rule."""

    def test_stdout_only(self):
        """Standard output alone is success."""
        assert interpret_output("[{\"a\":1}]\n", "") == (True, "[{\"a\":1}]\n")

    def test_stderr_wins(self):
        """Any standard error means failure, even with output."""
        assert interpret_output("partial", "boom") == (False, "Error: boom")

    def test_both_empty(self):
        """No output at all is success with an empty result."""
        assert interpret_output("", "") == (True, "")


class TestJobRunner:
    """Running real shell commands."""

    @pytest.mark.asyncio
    async def test_success(self, runner):
        """Standard output becomes the result."""
        result = await runner.run("printf 'hello'")
        assert isinstance(result, JobResult)
        assert result.success is True
        assert result.output == "hello"
        assert result.returncode == 0
        assert result.duration >= 0

    @pytest.mark.asyncio
    async def test_stderr_is_failure_regardless_of_exit_code(self, runner):
        """A command that exits 0 but writes to stderr fails."""
        result = await runner.run("printf 'warn' 1>&2; exit 0")
        assert result.success is False
        assert result.output == "Error: warn"
        assert result.returncode == 0

    @pytest.mark.asyncio
    async def test_nonzero_exit_without_output_is_success(self, runner, dbnbook_caplog):
        """Exit codes alone do not decide failure."""
        dbnbook_caplog.set_level(logging.WARNING, logger="dbnbook")
        result = await runner.run("exit 3")
        assert result.success is True
        assert result.output == ""
        assert result.returncode == 3
        assert "exited with code 3" in dbnbook_caplog.text

    @pytest.mark.asyncio
    async def test_missing_binary_reports_stderr(self, runner):
        """The shell's 'not found' diagnostic is the error."""
        result = await runner.run("definitely-not-a-real-binary-dbnbook")
        assert result.success is False
        assert result.output.startswith("Error: ")

    @pytest.mark.asyncio
    async def test_submit_delivers_exactly_once(self, runner):
        """The completion callback runs once with the outcome."""
        calls = []
        task = runner.submit("printf 'done'", lambda ok, out: calls.append((ok, out)))
        result = await task
        assert result.output == "done"
        assert calls == [(True, "done")]
        assert runner.active_jobs == 0

    @pytest.mark.asyncio
    async def test_concurrent_jobs_get_their_own_results(self, runner):
        """Overlapping jobs deliver to their own callbacks."""
        results = {}
        slow = runner.submit(
            "sleep 0.2; printf 'slow'",
            lambda ok, out: results.__setitem__("slow", (ok, out)),
        )
        fast = runner.submit(
            "printf 'fast'",
            lambda ok, out: results.__setitem__("fast", (ok, out)),
        )
        assert runner.active_jobs == 2
        await asyncio.gather(slow, fast)
        assert results == {"slow": (True, "slow"), "fast": (True, "fast")}

    @pytest.mark.asyncio
    async def test_callback_runs_on_loop_thread(self, runner):
        """Completions are delivered from the event loop."""
        loop = asyncio.get_running_loop()
        seen = []

        def on_complete(ok, out):
            seen.append(asyncio.get_running_loop() is loop)

        await runner.submit("true", on_complete)
        assert seen == [True]

    @pytest.mark.asyncio
    async def test_failing_callback_is_logged(self, runner, dbnbook_caplog):
        """An exception in the callback does not break the runner."""
        dbnbook_caplog.set_level(logging.ERROR, logger="dbnbook")

        def on_complete(ok, out):
            raise RuntimeError("callback bug")

        result = await runner.submit("printf 'x'", on_complete)
        assert result.success is True
        assert "Completion callback failed" in dbnbook_caplog.text

    @pytest.mark.asyncio
    async def test_wait(self, runner):
        """wait returns after every job and callback finished."""
        calls = []
        runner.submit("sleep 0.1", lambda ok, out: calls.append(1))
        runner.submit("true", lambda ok, out: calls.append(2))
        await runner.wait()
        assert sorted(calls) == [1, 2]
        assert runner.active_jobs == 0

    @pytest.mark.asyncio
    async def test_shutdown_kills_running_jobs(self, runner):
        """Jobs still running at shutdown are killed without completing."""
        calls = []
        task = runner.submit("sleep 5", lambda ok, out: calls.append(ok))
        await asyncio.sleep(0.1)
        await runner.shutdown()
        assert task.cancelled()
        assert calls == []
        assert runner.active_jobs == 0

    @pytest.mark.asyncio
    async def test_encoding_errors_are_replaced(self, runner):
        """Undecodable bytes do not fail the job."""
        result = await runner.run("printf '\\377ok'")
        assert result.success is True
        assert result.output.endswith("ok")

    @pytest.mark.asyncio
    async def test_stats(self, runner):
        """Counters track started, succeeded and failed jobs."""
        await runner.run("true")
        await runner.run("echo nope 1>&2")
        stats = runner.get_stats()
        assert stats["jobs_started"] == 2
        assert stats["jobs_succeeded"] == 1
        assert stats["jobs_failed"] == 1
        assert stats["active_jobs"] == 0

    @pytest.mark.asyncio
    async def test_commands_are_logged(self, dbnbook_caplog):
        """Command lines are logged at INFO when enabled."""
        dbnbook_caplog.set_level(logging.INFO, logger="dbnbook")
        runner = JobRunner(ExecutionConfig(log_commands=True))
        await runner.run("true")
        assert "Executing command: true" in dbnbook_caplog.text
