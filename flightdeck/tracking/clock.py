"""
FlightDeck Clocks and Timers
Injectable time sources so that watchdogs and replays can run without sleeping.
"""

import heapq
import itertools
import logging
import threading
from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TimerHandle:
    """Handle returned by call_later(); cancel() prevents the callback."""

    def __init__(self, cancel_fn: Optional[Callable[[], None]] = None):
        self._cancel_fn = cancel_fn
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        if self._cancel_fn is not None:
            self._cancel_fn()


class SystemClock:
    """Wall clock backed by daemon threading.Timer threads."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """
        Run callback on a background thread after delay_seconds.

        Args:
            delay_seconds: Delay before the callback runs
            callback: Function to call

        Returns:
            TimerHandle for cancellation
        """
        timer = threading.Timer(max(delay_seconds, 0.0), callback)
        timer.daemon = True
        handle = TimerHandle(timer.cancel)
        timer.start()
        return handle


class ManualClock:
    """
    Clock that only moves when told to.

    Timers scheduled with call_later() fire synchronously, in due order,
    from inside advance() and advance_to().

    Example:
        >>> clock = ManualClock(datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc))
        >>> handle = clock.call_later(5, lambda: print('fired'))
        >>> clock.advance(5)
        fired
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._timers: List[Tuple[datetime, int, TimerHandle, Callable[[], None]]] = []
        self._counter = itertools.count()

    def now(self) -> datetime:
        return self._now

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle()
        due = self._now + timedelta(seconds=max(delay_seconds, 0.0))
        heapq.heappush(self._timers, (due, next(self._counter), handle, callback))
        return handle

    @property
    def pending(self) -> int:
        """Number of scheduled timers that have not fired or been cancelled."""
        return sum(1 for _, _, handle, _ in self._timers if not handle.cancelled)

    def advance(self, seconds: float) -> None:
        """Move time forward, firing every timer that falls due."""
        self.advance_to(self._now + timedelta(seconds=seconds))

    def advance_to(self, moment: datetime) -> None:
        """
        Move time forward to moment, firing due timers in order.

        Moving backwards is ignored.
        """
        if moment < self._now:
            return
        while self._timers and self._timers[0][0] <= moment:
            due, _, handle, callback = heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            self._now = due
            callback()
        self._now = moment


class Watchdog:
    """
    Inactivity timer that fires at most once per stale period.

    Every reset() supersedes the previous timer. A generation counter
    discards callbacks from superseded timers that were already running
    when they were cancelled.
    """

    def __init__(self, clock, timeout_seconds: float, on_timeout: Callable[[], None]):
        """
        Initialize watchdog.

        Args:
            clock: SystemClock, ManualClock or compatible
            timeout_seconds: Silence that triggers on_timeout
            on_timeout: Callback invoked on expiry
        """
        self.clock = clock
        self.timeout_seconds = timeout_seconds
        self.on_timeout = on_timeout
        self._lock = threading.Lock()
        self._generation = 0
        self._handle: Optional[TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def reset(self) -> None:
        """(Re)start the countdown."""
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            generation = self._generation
            self._handle = self.clock.call_later(
                self.timeout_seconds, lambda: self._fire(generation)
            )

    def stop(self) -> None:
        """Disarm without firing."""
        with self._lock:
            self._cancel_locked()
            self._generation += 1

    def _cancel_locked(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._handle is None:
                return
            self._handle = None
        logger.debug("Watchdog expired after %.0f s", self.timeout_seconds)
        self.on_timeout()


class InlineExecutor(Executor):
    """Executor that runs submitted work immediately in the caller's thread."""

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future
