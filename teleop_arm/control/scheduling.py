"""
Scheduling Module
=================

Timer sources for the control loop.

The motion core never sleeps and never starts threads. Every suspension
(the playback tick of the executor, the debounce window of the sync
channel) is obtained from an injected Scheduler and returned as a handle the
owner must cancel on every exit path.

Implementations:
    - SimulatedScheduler: virtual clock advanced explicitly. Deterministic,
      used by tests and by the demo's offline mode.
    - AsyncioScheduler: wraps an asyncio event loop, giving a single
      cooperative control loop in a running service.

Author: Teleop Arm Project Team
License: MIT
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from typing import Callable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


# =============================================================================
# Protocols
# =============================================================================

class TimerHandle(Protocol):
    """Handle to a scheduled callback."""

    def cancel(self) -> None:
        """Prevent any further invocation."""
        ...

    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        ...


class Scheduler(Protocol):
    """Protocol for timer sources."""

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        """Run callback once after delay seconds."""
        ...

    def call_every(self, period: float, callback: Callback) -> TimerHandle:
        """Run callback every period seconds until cancelled."""
        ...

    def now(self) -> float:
        """Current time of this scheduler's clock (s)."""
        ...


# =============================================================================
# Simulated Scheduler
# =============================================================================

class _SimulatedTimer:
    """Timer entry of a SimulatedScheduler."""

    def __init__(self, callback: Callback, period: Optional[float] = None) -> None:
        self.callback = callback
        self.period = period
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class SimulatedScheduler:
    """
    Virtual-clock scheduler.

    Nothing runs until advance() is called; due callbacks then fire in time
    order (ties in scheduling order) on the caller's stack.

    Example:
        >>> scheduler = SimulatedScheduler()
        >>> handle = scheduler.call_every(0.1, tick)
        >>> scheduler.advance(0.35)   # tick runs 3 times
        >>> handle.cancel()
    """

    def __init__(self, start_time: float = 0.0) -> None:
        self._now = float(start_time)
        self._queue: List[Tuple[float, int, _SimulatedTimer]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callback) -> _SimulatedTimer:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        timer = _SimulatedTimer(callback)
        self._push(self._now + delay, timer)
        return timer

    def call_every(self, period: float, callback: Callback) -> _SimulatedTimer:
        if period <= 0:
            raise ValueError("period must be positive")
        timer = _SimulatedTimer(callback, period)
        self._push(self._now + period, timer)
        return timer

    def _push(self, due: float, timer: _SimulatedTimer) -> None:
        heapq.heappush(self._queue, (due, next(self._counter), timer))

    @property
    def pending(self) -> int:
        """Number of live (not cancelled) timers."""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled())

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward and fire everything that falls due.

        Args:
            seconds: Amount of virtual time to advance

        Returns:
            Number of callbacks invoked
        """
        if seconds < 0:
            raise ValueError("seconds must be non-negative")

        target = self._now + seconds
        fired = 0

        while self._queue and self._queue[0][0] <= target + 1e-12:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled():
                continue
            self._now = max(self._now, due)
            if timer.period is not None:
                self._push(due + timer.period, timer)
            timer.callback()
            fired += 1

        self._now = target
        return fired


# =============================================================================
# Asyncio Scheduler
# =============================================================================

class _PeriodicHandle:
    """Fixed-rate repeating call on an asyncio loop."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        period: float,
        callback: Callback
    ) -> None:
        self._loop = loop
        self._period = period
        self._callback = callback
        self._cancelled = False
        self._next_time = loop.time() + period
        self._handle = loop.call_at(self._next_time, self._run)

    def _run(self) -> None:
        if self._cancelled:
            return
        self._next_time += self._period
        self._handle = self._loop.call_at(self._next_time, self._run)
        self._callback()

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()

    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler:
    """
    Scheduler backed by an asyncio event loop.

    Callbacks run on the loop thread, interleaved cooperatively with
    transport I/O handled by the same loop.

    Example:
        >>> async def main():
        ...     scheduler = AsyncioScheduler()
        ...     session = ArmSession(transport=transport, scheduler=scheduler)
        ...     ...
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """
        Initialize scheduler.

        Args:
            loop: Event loop to use (the running loop if None)
        """
        self._loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self._loop.time()

    def call_later(self, delay: float, callback: Callback) -> asyncio.TimerHandle:
        return self._loop.call_later(delay, callback)

    def call_every(self, period: float, callback: Callback) -> _PeriodicHandle:
        if period <= 0:
            raise ValueError("period must be positive")
        return _PeriodicHandle(self._loop, period, callback)
