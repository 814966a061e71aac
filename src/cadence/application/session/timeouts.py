"""
Cancellable single-fire timers keyed by session id.

Arming a key replaces any pending timer for it. Disarming is idempotent:
cancelling a timer that already fired, or was never armed, does nothing.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

ExpiryCallback = Callable[[str], Awaitable[None]]


class InactivityTimers:
    def __init__(self, timeout_seconds: float, on_expire: ExpiryCallback):
        self.timeout_seconds = timeout_seconds
        self._on_expire = on_expire
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    def arm(self, key: str) -> None:
        """(Re)start the timer for key. Must be called from the running loop."""
        self.disarm(key)
        loop = asyncio.get_running_loop()
        self._handles[key] = loop.call_later(self.timeout_seconds, self._fire, key)

    def disarm(self, key: str) -> None:
        handle = self._handles.pop(key, None)
        if handle is not None:
            handle.cancel()

    def is_armed(self, key: str) -> bool:
        return key in self._handles

    def cancel_all(self) -> None:
        for key in list(self._handles):
            self.disarm(key)

    async def drain(self) -> None:
        """Wait for expiry callbacks that already started."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _fire(self, key: str) -> None:
        self._handles.pop(key, None)
        logger.info(f"Session {key} inactive for {self.timeout_seconds}s, expiring")
        task = asyncio.ensure_future(self._on_expire(key))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Session expiry failed", exc_info=exc)
