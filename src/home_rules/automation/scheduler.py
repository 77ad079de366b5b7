"""
Schedulers for delayed continuations.

A Delay action never sleeps. The executor hands the rest of the action list
to a Scheduler as a callback and returns; the scheduler invokes it once the
delay has elapsed.
"""

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple

Callback = Callable[[], None]


class ScheduledCall(ABC):
    """Handle to a pending callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running. No-op if it already ran."""
        pass


class Scheduler(ABC):
    """Abstract source of delayed callbacks."""

    @abstractmethod
    def call_later(self, seconds: float, callback: Callback) -> ScheduledCall:
        """
        Run a callback after a delay.

        Args:
            seconds: Delay in seconds (>= 0)
            callback: Zero-argument callable

        Returns:
            Handle that can cancel the callback
        """
        pass


class _AsyncioCall(ScheduledCall):
    def __init__(self, handle: asyncio.TimerHandle) -> None:
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()


class AsyncioScheduler(Scheduler):
    """
    Scheduler backed by an asyncio event loop.

    Callbacks run on the loop's thread. When no loop is given, the loop
    running at construction is used.

    Raises:
        RuntimeError: If no loop is given and none is running
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                raise RuntimeError(
                    "AsyncioScheduler needs an event loop; create it inside a running "
                    "loop, pass loop=, or use another Scheduler"
                ) from None
        self._loop = loop

    def call_later(self, seconds: float, callback: Callback) -> ScheduledCall:
        return _AsyncioCall(self._loop.call_later(seconds, callback))


class _ManualCall(ScheduledCall):
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """
    Scheduler driven by a virtual clock, for tests and simulations.

    Nothing runs until advance() moves the clock past a callback's due time.
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._counter = itertools.count()
        self._queue: List[Tuple[float, int, _ManualCall, Callback]] = []

    @property
    def now(self) -> float:
        """Virtual seconds elapsed."""
        return self._now

    @property
    def pending(self) -> int:
        """Number of callbacks still waiting to run."""
        return sum(1 for _, _, call, _ in self._queue if not call.cancelled)

    def call_later(self, seconds: float, callback: Callback) -> ScheduledCall:
        call = _ManualCall()
        heapq.heappush(self._queue, (self._now + seconds, next(self._counter), call, callback))
        return call

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, running every callback that falls due.

        Callbacks scheduled by callbacks also run if they fall due within
        the same window.

        Returns:
            Number of callbacks run
        """
        target = self._now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, call, callback = heapq.heappop(self._queue)
            self._now = due
            if call.cancelled:
                continue
            callback()
            ran += 1
        self._now = target
        return ran
