"""In-flight request table (single-flight).

Concurrent callers asking for the same key attach to one running task
instead of issuing their own. A caller that is cancelled while waiting
only abandons its own wait: the shared task keeps running for any other
waiter.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Hashable

import structlog

log = structlog.get_logger(__name__)


class SingleFlight:
    """Map of key -> running task. Entries vanish when the task finishes."""

    def __init__(self) -> None:
        self._in_flight: Dict[Hashable, asyncio.Task] = {}

    def __contains__(self, key: Hashable) -> bool:
        return key in self._in_flight

    def __len__(self) -> int:
        return len(self._in_flight)

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Run `fn` for `key`, or join the run already in flight."""
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._in_flight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            log.debug("single_flight_joined", key=key)

        return await asyncio.shield(task)

    def _forget(self, key: Hashable, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # A task whose every waiter was cancelled would otherwise warn
        # about an unretrieved exception.
        if not task.cancelled() and task.exception() is not None:
            log.debug(
                "single_flight_task_failed",
                key=key,
                error_type=type(task.exception()).__name__,
            )
