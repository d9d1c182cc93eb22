"""Background tasks of the daemon, grouped by the agent that owns them.

Each agent spawns its dispatcher, sender activation and delayed
reconciliation here under its own label, so stopping one agent cancels
exactly its tasks while the other agent keeps running.
"""

from __future__ import annotations

import asyncio
from typing import Coroutine, TypeVar

from guildwatch.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TaskRegistry:
    """Owner-keyed set of live asyncio tasks.

    Finished tasks drop out on their own; a task that dies with an exception
    is logged under its owner.
    """

    def __init__(self) -> None:
        self._owners: dict[asyncio.Task[object], str] = {}

    def spawn(self, coro: Coroutine[object, object, T], *, owner: str, name: str) -> asyncio.Task[T]:
        task = asyncio.create_task(coro, name=f"{owner}:{name}")
        self._owners[task] = owner  # type: ignore[index]
        task.add_done_callback(self._forget)  # type: ignore[arg-type]
        return task

    def _forget(self, task: asyncio.Task[object]) -> None:
        owner = self._owners.pop(task, "?")
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed: %s", task.get_name(), exc, agent=owner, exc_info=exc)

    def owned_by(self, owner: str) -> list[str]:
        """Names of the live tasks belonging to ``owner``."""
        return sorted(task.get_name() for task, task_owner in self._owners.items() if task_owner == owner)

    def task_count(self) -> int:
        return len(self._owners)

    async def cancel_owner(self, owner: str, timeout: float = 5.0) -> None:
        """Cancel every task of one agent and wait for them to unwind."""
        current = asyncio.current_task()
        await self._cancel(
            {task for task, task_owner in self._owners.items() if task_owner == owner and task is not current},
            timeout,
        )

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Cancel every remaining task, whoever owns it."""
        await self._cancel(set(self._owners), timeout)

    async def _cancel(self, tasks: set[asyncio.Task[object]], timeout: float) -> None:
        if not tasks:
            return
        for task in tasks:
            task.cancel()
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            logger.warning("Task %s still running %.1fs after cancel", task.get_name(), timeout)
