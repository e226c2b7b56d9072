"""
Background task registry (v1).

Responsibilities:
- Own every background task started on behalf of a coordinator
  (negotiation, phase subscription, interruption watcher, delayed
  retries, device switches, resource sampling)
- Replace a task when a new one is spawned under the same key
- Cancel tasks individually, by prefix, or all at once on stop

Non-responsibilities:
- NO retry logic
- NO state machine decisions
- NO run_id generation
- NO knowledge of reducer transitions

This module is infrastructure only.
"""

from __future__ import annotations

import asyncio
from asyncio import Task
from typing import Any, Coroutine

from observability.logger import log_event


class CancellationManager:
    """
    Keyed registry of cancellable background tasks.

    Lifecycle:
    1. Runtime or recovery engine calls spawn(key, coro)
    2. Any previous task under key is cancelled first
    3. Finished tasks remove themselves from the registry
    4. stop() -> clear_all() cancels whatever is still running

    This class never decides what happens next.
    """

    def __init__(self, *, session_id: str | None = None) -> None:
        self._session_id = session_id
        self._tasks: dict[str, Task[None]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def spawn(self, key: str, coro: Coroutine[Any, Any, None]) -> Task[None]:
        """Start coro as a task under key, replacing any running task."""
        self.cancel(key)
        task = asyncio.create_task(coro)
        self._tasks[key] = task
        task.add_done_callback(lambda t, k=key: self._forget(k, t))
        return task

    def cancel(self, key: str) -> bool:
        """
        Cancel the task registered under key.

        Idempotent: returns False if nothing was running.
        """
        task = self._tasks.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def cancel_prefix(self, prefix: str) -> int:
        """Cancel every task whose key starts with prefix."""
        cancelled = 0
        for key in [k for k in self._tasks if k.startswith(prefix)]:
            if self.cancel(key):
                cancelled += 1
        return cancelled

    def clear_all(self) -> None:
        """
        Cancel and clear all outstanding tasks.
        Used on stop and session teardown.
        """
        if self._tasks:
            log_event({
                "event_type": "TASKS_CANCELLED",
                "session_id": self._session_id,
                "keys": sorted(self._tasks),
            })
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
        self._tasks.clear()

    def is_running(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def keys(self) -> tuple[str, ...]:
        return tuple(k for k, t in self._tasks.items() if not t.done())

    def __len__(self) -> int:
        return len(self.keys())

    async def wait_idle(self) -> None:
        """Wait for currently registered tasks to finish (tests, shutdown)."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _forget(self, key: str, task: Task[None]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_event({
                "event_type": "TASK_FAILED",
                "session_id": self._session_id,
                "task": key,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
