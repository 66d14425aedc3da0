"""Timers for the diff debounce.

The change detector only needs ``call_later(delay, callback)`` returning a
handle with ``cancel()``.  :class:`AsyncioScheduler` delegates to a running
event loop; :class:`ManualScheduler` keeps its own timer queue and fires
timers only when pumped, which makes debounce behaviour deterministic
under a fake clock.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class TimerHandle(Protocol):
    def cancel(self) -> None: ...


@runtime_checkable
class Scheduler(Protocol):
    """Anything that can run a callback after a delay."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run *callback* once, *delay* seconds from now, unless cancelled."""
        ...


class AsyncioScheduler:
    """Schedule timers on an asyncio event loop.

    Parameters
    ----------
    loop:
        The loop to use.  Defaults to the running loop.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(delay, callback)


class _ManualTimer:
    __slots__ = ("callback", "cancelled", "deadline")

    def __init__(self, deadline: float, callback: Callable[[], None]) -> None:
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """A timer queue driven by explicit calls instead of an event loop.

    Parameters
    ----------
    clock:
        Zero-argument callable returning the current time in seconds.
        ``None`` gives a virtual clock that starts at ``0.0`` and moves only
        through :meth:`advance`.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock
        self._virtual_now = 0.0
        self._queue: list[tuple[float, int, _ManualTimer]] = []
        self._sequence = itertools.count()

    def now(self) -> float:
        return self._clock() if self._clock is not None else self._virtual_now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(self.now() + max(0.0, delay), callback)
        heapq.heappush(self._queue, (timer.deadline, next(self._sequence), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of timers that are scheduled and not cancelled."""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the virtual clock forward and fire due timers.

        Returns the number of callbacks run.

        Raises
        ------
        ValueError
            If the scheduler was built with an external clock, or
            *seconds* is negative.
        """
        if self._clock is not None:
            raise ValueError("advance() requires the virtual clock (clock=None)")
        if seconds < 0:
            raise ValueError(f"seconds must be >= 0, got {seconds}")
        self._virtual_now += seconds
        return self.run_due()

    def run_due(self) -> int:
        """Fire every timer whose deadline has passed, in deadline order."""
        fired = 0
        now = self.now()
        while self._queue and self._queue[0][0] <= now:
            _, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            timer.cancelled = True
            timer.callback()
            fired += 1
        return fired


def default_scheduler() -> Scheduler:
    """An :class:`AsyncioScheduler` inside a running loop, else a monotonic :class:`ManualScheduler`."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return ManualScheduler(time.monotonic)
    return AsyncioScheduler(loop)
