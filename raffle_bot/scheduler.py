"""Revocable one-shot timers that survive arbitrarily long delays.

Each timer stores only its target epoch. The task sleeps in chunks of at
most ``MAX_DELAY_MS`` and re-checks the clock after every chunk, so long
giveaways never overflow the platform's single-delay bound.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .models import now_ms

log = logging.getLogger(__name__)

MAX_DELAY_MS = 2**31 - 1

TimerCallback = Callable[[], Awaitable[Any] | Any]


class TimerScheduler:
    def __init__(
        self,
        *,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        max_delay_ms: int = MAX_DELAY_MS,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._max_delay_ms = max_delay_ms
        self._tasks: dict[str, asyncio.Task] = {}
        self._due: dict[str, int] = {}

    def schedule(self, key: str, due_at_ms: int, callback: TimerCallback) -> asyncio.Task:
        """Arm ``callback`` for ``due_at_ms``, replacing any timer under ``key``."""
        self.cancel(key)
        self._due[key] = due_at_ms
        task = asyncio.get_running_loop().create_task(
            self._run(key, due_at_ms, callback), name=f"timer:{key}"
        )
        self._tasks[key] = task
        log.debug("Timer %s armed for %s", key, due_at_ms)
        return task

    def cancel(self, key: str) -> bool:
        task = self._tasks.pop(key, None)
        self._due.pop(key, None)
        if task is None:
            return False
        if not task.done() and task is not _current_task():
            task.cancel()
        log.debug("Timer %s cancelled", key)
        return True

    def is_scheduled(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def due_at(self, key: str) -> int | None:
        return self._due.get(key)

    def pending(self) -> list[str]:
        return sorted(key for key in self._tasks if self.is_scheduled(key))

    async def close(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        self._due.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, key: str, due_at_ms: int, callback: TimerCallback) -> None:
        try:
            while True:
                remaining = due_at_ms - self._clock()
                if remaining <= 0:
                    break
                await self._sleep(min(remaining, self._max_delay_ms) / 1000)
        except asyncio.CancelledError:
            return

        # the timer is released before firing so the callback may re-arm it
        if self._tasks.get(key) is _current_task():
            self._tasks.pop(key, None)
            self._due.pop(key, None)
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("Timer %s callback failed", key)


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


__all__ = ["MAX_DELAY_MS", "TimerCallback", "TimerScheduler"]
