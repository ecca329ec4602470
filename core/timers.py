"""
Single-loop timer facility shared by the capture loop and the pomodoro timer.

Everything scheduled here runs on one asyncio event loop, so session state
is never mutated in parallel. Blocking SDK calls are pushed to worker
threads by the callers (asyncio.to_thread) and resume on the loop.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Coroutine, Optional, Protocol, Set

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """What the engine needs from a clock + timer source."""

    def now(self) -> float:
        """Current time in epoch seconds."""
        ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        ...

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        ...


class LoopScheduler:
    """
    Scheduler backed by an asyncio event loop.

    Keeps strong references to spawned tasks (the loop only holds weak
    ones) and logs any exception a fire-and-forget task ends with.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._tasks: Set["asyncio.Task[Any]"] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> asyncio.TimerHandle:
        return self.loop.call_later(delay, callback, *args)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        task = self.loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task failed: {error!r}", exc_info=error)

    async def shutdown(self) -> None:
        """Cancel and await every task still running."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
