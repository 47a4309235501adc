"""Cancellable tick scheduling for auto-play.

Auto-play is cooperative: a controller asks a scheduler to call it back
after a delay and keeps the returned handle so it can cancel it. Any
``asyncio`` event loop satisfies :class:`Scheduler` through
``loop.call_later``; :class:`ManualScheduler` is a deterministic virtual
clock for tests and batch runs.
"""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable, List, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        """Prevent the callback from firing."""


class Scheduler(Protocol):
    """Anything that can run ``callback`` once after ``delay`` seconds."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Schedule ``callback`` and return a cancellable handle."""


@dataclass(order=True)
class _Scheduled:
    when: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock; callbacks fire only from :meth:`advance` or :meth:`run_until_idle`."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: List[_Scheduled] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Scheduled:
        entry = _Scheduled(self.now + max(0.0, float(delay)), next(self._seq), callback)
        heapq.heappush(self._queue, entry)
        return entry

    @property
    def pending(self) -> int:
        return sum(1 for entry in self._queue if not entry.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due callbacks in time order; return how many fired."""

        deadline = self.now + max(0.0, float(seconds))
        fired = 0
        while self._queue and self._queue[0].when <= deadline:
            entry = heapq.heappop(self._queue)
            if entry.cancelled:
                continue
            self.now = entry.when
            entry.callback()
            fired += 1
        self.now = deadline
        return fired

    def run_until_idle(self, max_callbacks: int = 1_000_000) -> int:
        """Fire callbacks until nothing is pending."""

        fired = 0
        while fired < max_callbacks:
            while self._queue and self._queue[0].cancelled:
                heapq.heappop(self._queue)
            if not self._queue:
                break
            entry = heapq.heappop(self._queue)
            self.now = max(self.now, entry.when)
            entry.callback()
            fired += 1
        return fired


__all__ = ["ManualScheduler", "Scheduler", "TimerHandle"]
