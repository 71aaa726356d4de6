"""
delivery_auth.monitor.timers

Timer primitives for the session monitors.

Responsibilities:
- `TimerSlot`: one owned one-shot timer; re-arming replaces the previous one.
- `Ticker`: a periodic loop that can be stopped from inside its own callback.

Both carry a generation counter bumped on every arm/cancel/start/stop. A callback
scheduled under an older generation does nothing when it runs.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from delivery_auth.observability.logging import get_logger

log = get_logger(__name__)

Callback = Callable[[], Awaitable[None]]


class TimerSlot:
    def __init__(self, name: str) -> None:
        self._name = name
        self._generation = 0
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self, delay: float, callback: Callback) -> int:
        self.cancel()
        generation = self._generation
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire, generation, callback)
        return generation

    def cancel(self) -> None:
        """Invalidate the pending callback. A callback already running is left to finish."""
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def close(self) -> None:
        self.cancel()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    def _fire(self, generation: int, callback: Callback) -> None:
        if generation != self._generation:
            return
        self._handle = None
        self._task = asyncio.ensure_future(callback())
        self._task.add_done_callback(self._log_failure)

    def _log_failure(self, task: asyncio.Task[None]) -> None:
        if not task.cancelled() and task.exception() is not None:
            log.error("timer_callback_failed", timer=self._name, error=str(task.exception()))


class Ticker:
    def __init__(self, name: str, interval: float, callback: Callback) -> None:
        self._name = name
        self._interval = interval
        self._callback = callback
        self._generation = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, *, immediate: bool = False) -> None:
        if self.running:
            return
        self._generation += 1
        self._task = asyncio.create_task(self._run(self._generation, immediate))

    def stop(self) -> None:
        self._generation += 1
        task, self._task = self._task, None
        # Stopping from inside the callback: the generation bump ends the loop.
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run(self, generation: int, immediate: bool) -> None:
        if not immediate:
            await asyncio.sleep(self._interval)
        while generation == self._generation:
            try:
                await self._callback()
            except Exception:
                log.exception("ticker_callback_failed", ticker=self._name)
            if generation != self._generation:
                return
            await asyncio.sleep(self._interval)


# --- Module Notes -----------------------------------------------------------
# Everything runs on the event loop thread; the generation counters are plain ints
# because no other thread touches them.
