"""Scheduling: asyncio-backed and virtual-clock schedulers, timers and disposers.

All navigation callbacks run on one scheduler, one at a time. Schedulers share
a small interface:

    time() -> float
    call_soon(callback, *args) -> handle      (safe to call from any thread)
    call_later(delay, callback, *args) -> handle
    call_every(interval, callback, *args) -> Ticker

Every handle has cancel().
"""

import asyncio
import heapq
import itertools
from typing import Callable, Optional


class Timer:
    """A one-shot callback scheduled on a VirtualScheduler"""

    def __init__(self, when: float, callback: Callable, args: tuple):
        self.when = when
        self._callback = callback
        self._args = args
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    def _run(self):
        if not self._cancelled:
            self._callback(*self._args)


class Ticker:
    """Repeating callback built on a scheduler's call_later"""

    def __init__(self, scheduler, interval: float, callback: Callable, args: tuple = ()):
        if interval <= 0:
            raise ValueError("Ticker interval must be positive")
        self.scheduler = scheduler
        self.interval = interval
        self._callback = callback
        self._args = args
        self._cancelled = False
        self._handle = scheduler.call_later(interval, self._tick)

    def _tick(self):
        if self._cancelled:
            return
        self._handle = self.scheduler.call_later(self.interval, self._tick)
        self._callback(*self._args)

    def cancel(self):
        self._cancelled = True
        self._handle.cancel()

    def cancelled(self) -> bool:
        return self._cancelled


class LoopScheduler:
    """Scheduler running on an asyncio event loop"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop or asyncio.get_running_loop()

    def time(self) -> float:
        return self.loop.time()

    def call_soon(self, callback: Callable, *args):
        return self.loop.call_soon_threadsafe(callback, *args)

    def call_later(self, delay: float, callback: Callable, *args):
        return self.loop.call_later(max(0.0, delay), callback, *args)

    def call_every(self, interval: float, callback: Callable, *args) -> Ticker:
        return Ticker(self, interval, callback, args)


class VirtualScheduler:
    """Deterministic scheduler driven by an explicit virtual clock.

    Nothing runs until advance() or run_pending() is called. Used by the tests
    and for instant trace replay. Single-threaded only.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: list = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self._now

    def call_soon(self, callback: Callable, *args) -> Timer:
        return self.call_later(0, callback, *args)

    def call_later(self, delay: float, callback: Callable, *args) -> Timer:
        timer = Timer(self._now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (timer.when, next(self._seq), timer))
        return timer

    def call_every(self, interval: float, callback: Callable, *args) -> Ticker:
        return Ticker(self, interval, callback, args)

    def advance(self, seconds: float):
        """Move the clock forward, running every callback that falls due"""
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            when, _, timer = heapq.heappop(self._queue)
            if timer.cancelled():
                continue
            self._now = max(self._now, when)
            timer._run()
        self._now = target

    def run_pending(self):
        """Run everything already due without moving the clock"""
        self.advance(0)

    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled())


class SessionDisposer:
    """Owns the position subscription and every timer of one navigation session.

    dispose() releases all of them once; later calls are no-ops. Resources
    added after disposal are released immediately.
    """

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.disposed = False
        self._cleanups: list[Callable[[], None]] = []

    def add(self, cleanup: Callable[[], None]):
        if self.disposed:
            cleanup()
            return
        self._cleanups.append(cleanup)

    def add_timer(self, handle):
        """Track a timer or ticker handle; returns it"""
        self.add(handle.cancel)
        return handle

    def dispose(self):
        if self.disposed:
            return
        self.disposed = True
        cleanups, self._cleanups = self._cleanups, []
        for cleanup in reversed(cleanups):
            cleanup()
