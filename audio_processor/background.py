"""
Best-effort background work for a call

Side effects such as partial transcript flushes and talk-time updates are
submitted here and never awaited by the caller. Failures are reported
through the log only.
"""

import asyncio
from typing import Awaitable, Set

import logging
logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Fire-and-forget task set with centralized error logging"""

    def __init__(self, name: str = ""):
        self.name = name
        self._tasks: Set[asyncio.Task] = set()
        self.failures = 0

    def submit(self, coro: Awaitable, label: str) -> asyncio.Task:
        """Schedule `coro` and return immediately"""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(t, label))
        return task

    def _on_done(self, task: asyncio.Task, label: str):
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"[Background] {self.name} {label} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            self.failures += 1
            logger.error(f"[Background] {self.name} {label} failed: {type(exc).__name__} - {exc}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float = 10.0):
        """Wait for outstanding tasks (shutdown and tests)"""
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"[Background] {self.name} {len(pending)} task(s) still running after {timeout}s")
