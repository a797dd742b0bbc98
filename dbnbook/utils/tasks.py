"""Helpers for tracking background asyncio tasks."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Coroutine


class BackgroundTaskGroup:
    """Keeps strong references to fire-and-forget tasks until they finish."""

    def __init__(self) -> None:
        """Initialize empty task group."""
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        """Return the number of tasks still pending."""
        return len(self._tasks)

    def create(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Create and track an asyncio task from a coroutine."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait(self) -> None:
        """Wait until every tracked task has finished, including late additions."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def cancel_and_wait(self, timeout: float | None = None) -> None:
        """Cancel all tracked tasks and wait for them (with optional timeout)."""
        if not self._tasks:
            return
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
        pending = asyncio.gather(*self._tasks, return_exceptions=True)
        if timeout is None:
            await pending
        else:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(pending, timeout=timeout)
        self._tasks.clear()
