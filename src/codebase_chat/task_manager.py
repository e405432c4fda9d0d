"""Lifecycle tracking for per-thread send tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Keep references to background send tasks keyed by thread id.

    Finished tasks remove themselves, and an unhandled exception is logged
    rather than lost with the task object.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[Any]] = {}

    def add(self, name: str, task: asyncio.Task[Any]) -> None:
        """Register a task under a name, e.g. the thread it sends to."""
        self._tasks[name] = task
        task.add_done_callback(lambda done: self._on_done(name, done))

    def _on_done(self, name: str, task: asyncio.Task[Any]) -> None:
        if self._tasks.get(name) is task:
            del self._tasks[name]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning(
                "task.exception",
                extra={
                    "event": "task.exception",
                    "task_name": name,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    def get(self, name: str) -> asyncio.Task[Any] | None:
        """Return the running task registered under ``name``, if any."""
        return self._tasks.get(name)

    def __len__(self) -> int:
        return len(self._tasks)

    async def await_all(self) -> None:
        """Wait for every tracked task without cancelling it."""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel every tracked task and wait for them to finish."""
        tasks = list(self._tasks.values())
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
