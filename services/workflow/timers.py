from __future__ import annotations

import asyncio
import heapq
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Tuple


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...


@dataclass
class CancellationToken:
    """Shared flag a scheduled chain checks before every step."""

    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class AsyncioScheduler:
    """
    Schedules callbacks on an asyncio loop.
    Without an explicit loop, the running loop at call time is used, so
    call_later must be invoked from a coroutine (e.g. an `async def` route).
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_s, callback)


@dataclass
class _VirtualTimer:
    due: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class VirtualScheduler:
    """
    Deterministic clock for simulations and tests.
    Callbacks only run inside advance()/run_until_idle(), in due order;
    timers scheduled by a callback run in the same advance() if they fall due.
    """

    now: float = 0.0
    _queue: List[Tuple[float, int, _VirtualTimer]] = field(default_factory=list)
    _seq: Any = field(default_factory=itertools.count)

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _VirtualTimer(due=self.now + max(0.0, float(delay_s)), callback=callback)
        heapq.heappush(self._queue, (timer.due, next(self._seq), timer))
        return timer

    def pending(self) -> int:
        return sum(1 for _, _, t in self._queue if not t.cancelled)

    def advance(self, seconds: float) -> int:
        """Moves the clock forward, returns how many callbacks ran."""
        target = self.now + float(seconds)
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            self.now = due
            if timer.cancelled:
                continue
            timer.callback()
            ran += 1
        self.now = target
        return ran

    def run_until_idle(self, max_callbacks: int = 10_000) -> int:
        ran = 0
        while self._queue:
            if ran >= max_callbacks:
                raise RuntimeError(f"scheduler still busy after {max_callbacks} callbacks")
            due, _, timer = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            if timer.cancelled:
                continue
            timer.callback()
            ran += 1
        return ran
