"""
Fire-and-forget work that must outlive the request.

Tasks are tracked in a set so shutdown can wait for them (bounded), and
each runs inside its own exception boundary: a failing email never takes
down the process or touches the response that scheduled it.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class BackgroundTasks:
    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(
        self,
        fn: Callable[..., Awaitable[Any]],
        *args: Any,
        name: Optional[str] = None,
    ) -> asyncio.Task:
        label = name or getattr(fn, "__qualname__", repr(fn))
        task = asyncio.create_task(self._run(label, fn, *args), name=label)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, label: str, fn: Callable[..., Awaitable[Any]], *args: Any) -> None:
        try:
            await fn(*args)
        except Exception as exc:
            logger.error(
                "Background task %s failed: %s | Context: %s",
                label,
                exc,
                getattr(exc, "context", {}),
                exc_info=True,
            )

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every in-flight task.

        Returns:
            True when all tasks finished, False when `timeout` expired first.
        """
        if not self._tasks:
            return True
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_running:
            logger.warning("%d background task(s) still running after %.1fs", len(still_running), timeout)
            return False
        return True
