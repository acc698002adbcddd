from __future__ import annotations

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple


class ScheduledCall:
    """A pending deferred callback. `cancel()` prevents it from running."""

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False
        self._handle: Optional[asyncio.TimerHandle] = None

    def cancel(self) -> None:
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()

    def _run(self) -> None:
        if not self.cancelled:
            self.callback()


class Scheduler(ABC):
    """
    Abstract source of deferred callbacks (debounced UI notifications).
    """

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        pass


class LoopScheduler(Scheduler):
    """
    Schedules callbacks on an asyncio event loop.

    Without an explicit loop, the loop running at call time is used, so
    scheduling must happen from inside a coroutine or loop callback.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        loop = self._loop or asyncio.get_running_loop()
        call = ScheduledCall(loop.time() + delay, callback)
        call._handle = loop.call_later(delay, call._run)
        return call


class VirtualScheduler(Scheduler):
    """
    Deterministic scheduler driven by a virtual clock.

    Nothing runs until `advance()` (or `run_pending()`) moves the clock;
    due callbacks then run in time order, FIFO among equal times.
    """

    def __init__(self, start: float = 0.0):
        self.now = start
        self._queue: List[Tuple[float, int, ScheduledCall]] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(self.now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (call.when, next(self._seq), call))
        return call

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward and run every callback that became due.
        Callbacks scheduled by callbacks run too if they fall inside the window.
        Returns the number of callbacks run.
        """
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            when, _, call = heapq.heappop(self._queue)
            self.now = when
            if not call.cancelled:
                call._run()
                ran += 1
        self.now = target
        return ran

    def run_pending(self) -> int:
        """Run callbacks that are due at the current virtual time."""
        return self.advance(0.0)

    @property
    def pending(self) -> int:
        return sum(1 for _, _, call in self._queue if not call.cancelled)
