"""
Timer scheduling for reconnects.

Retries are scheduled through this small interface instead of calling
asyncio directly, so tests can drive time by hand and reproduce
retry/cancel races exactly.
"""

import asyncio
import heapq
from abc import ABC, abstractmethod
from itertools import count
from typing import Callable, Optional


class Timer(ABC):
    """A scheduled callback that can be cancelled."""

    @abstractmethod
    def cancel(self) -> None:
        pass

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        pass


class Scheduler(ABC):
    """Runs callbacks after a delay on the dashboard's thread of control."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> Timer:
        pass


class _AsyncioTimer(Timer):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    """Schedules on an asyncio event loop (the running one by default)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> Timer:
        loop = self._loop or asyncio.get_running_loop()
        return _AsyncioTimer(loop.call_later(delay, callback))


class _ManualTimer(Timer):
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self._cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """
    Scheduler whose clock only moves when told to.

    Usage:
        scheduler = ManualScheduler()
        subscription = ResilientSubscription(..., scheduler=scheduler)
        scheduler.advance(5)   # fires everything due within 5 seconds
    """

    def __init__(self):
        self.now = 0.0
        self._queue: list[tuple[float, int, _ManualTimer]] = []
        self._seq = count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> Timer:
        timer = _ManualTimer(self.now + delay, callback)
        heapq.heappush(self._queue, (timer.due, next(self._seq), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of timers that are scheduled and not cancelled."""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, firing due timers in order.

        Timers scheduled by a firing callback also fire if they fall due
        within the window. Returns the number of callbacks run.
        """
        deadline = self.now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= deadline:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.now = due
            timer.fired = True
            timer.callback()
            fired += 1
        self.now = deadline
        return fired
