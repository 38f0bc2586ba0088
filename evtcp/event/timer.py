"""
Timer scheduler for the single-threaded event loop.

Timers live in a heap ordered by (fire time, scheduling sequence), so timers
due at the same instant fire in the order they were scheduled. A single
asyncio handle is armed for the earliest deadline; when it fires, every due
timer is dispatched in order. Cancelled timers are flagged and skipped,
which makes cancellation immediate even for a timer that is already due in
the current dispatch pass.
"""

import asyncio
import heapq
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger

TimerID = int
TimerCallback = Callable[[TimerID], Any]


@dataclass
class Timer:
    """A scheduled timer."""
    timer_id: TimerID
    fire_time: float      # Absolute, in scheduler clock seconds
    delay: float          # Requested delay in seconds
    repeating: bool
    callback: TimerCallback = field(repr=False)
    cancelled: bool = False
    fire_count: int = 0

    @property
    def interval(self) -> float:
        """Seconds between firings, 0 for one-shot"""
        return self.delay if self.repeating else 0.0


class TimerScheduler:
    """
    Heap-based timer scheduler bound to an asyncio loop.

    Delays are given in milliseconds. ``clock`` returns the current time in
    seconds and defaults to the loop's monotonic clock; tests may inject
    their own clock and drive dispatch with ``process_timers``.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        clock: Optional[Callable[[], float]] = None
    ):
        self._loop = loop
        self._clock = clock or loop.time
        self._heap: List[Tuple[float, int, Timer]] = []
        self._timers: Dict[TimerID, Timer] = {}
        self._ids = itertools.count(1)
        self._seq = itertools.count()
        self._wakeup: Optional[asyncio.TimerHandle] = None
        self._wakeup_at: Optional[float] = None
        self._dispatching = False

    def __len__(self) -> int:
        return len(self._timers)

    def __contains__(self, timer_id: object) -> bool:
        return timer_id in self._timers

    def now(self) -> float:
        return self._clock()

    def set_timer(self, delay_ms: float, callback: TimerCallback, repeating: bool = False) -> TimerID:
        """
        Schedule a callback.

        Args:
            delay_ms: Delay before the first firing, and the interval for
                repeating timers, in milliseconds
            callback: Called as ``callback(timer_id)`` on the loop thread
            repeating: Re-arm after each firing until killed

        Returns:
            Handle for kill_timer/reset_timer

        Raises:
            ValueError: If the delay is negative, or zero for a repeating timer
            TypeError: If callback is not callable
        """
        if not callable(callback):
            raise TypeError("Timer callback must be callable")
        if delay_ms < 0:
            raise ValueError(f"Timer delay must be non-negative, got {delay_ms}")
        if repeating and delay_ms <= 0:
            raise ValueError("Repeating timer interval must be positive")

        delay = delay_ms / 1000.0
        timer = Timer(
            timer_id=next(self._ids),
            fire_time=self._clock() + delay,
            delay=delay,
            repeating=repeating,
            callback=callback
        )
        self._timers[timer.timer_id] = timer
        self._push(timer)
        self._schedule_wakeup()

        logger.debug(
            f"Timer {timer.timer_id} set: delay={delay_ms}ms repeating={repeating}")
        return timer.timer_id

    def set_timeout(self, delay_ms: float, callback: TimerCallback) -> TimerID:
        return self.set_timer(delay_ms, callback, repeating=False)

    def set_interval(self, interval_ms: float, callback: TimerCallback) -> TimerID:
        return self.set_timer(interval_ms, callback, repeating=True)

    def kill_timer(self, timer_id: Optional[TimerID]) -> bool:
        """
        Cancel a timer. Unknown or already expired handles are ignored.

        Returns:
            True if a pending timer was cancelled
        """
        timer = self._timers.pop(timer_id, None) if timer_id is not None else None
        if timer is None:
            return False

        timer.cancelled = True
        logger.debug(f"Timer {timer_id} killed")
        self._schedule_wakeup()
        return True

    def reset_timer(self, timer_id: TimerID, delay_ms: Optional[float] = None) -> bool:
        """Restart a pending timer's countdown from now

        Args:
            timer_id: Timer handle
            delay_ms: New delay; keeps the timer's interval when omitted

        Returns:
            True if the timer exists and was re-armed
        """
        old = self._timers.get(timer_id)
        if old is None:
            return False

        if delay_ms is None:
            delay = old.delay
        else:
            if delay_ms < 0 or (old.repeating and delay_ms <= 0):
                raise ValueError(f"Invalid timer delay: {delay_ms}")
            delay = delay_ms / 1000.0

        old.cancelled = True
        timer = Timer(
            timer_id=timer_id,
            fire_time=self._clock() + delay,
            delay=delay,
            repeating=old.repeating,
            callback=old.callback,
            fire_count=old.fire_count
        )
        self._timers[timer_id] = timer
        self._push(timer)
        self._schedule_wakeup()
        return True

    def get_timer(self, timer_id: TimerID) -> Optional[Timer]:
        return self._timers.get(timer_id)

    def next_deadline(self) -> Optional[float]:
        """Fire time of the earliest live timer"""
        self._discard_cancelled()
        return self._heap[0][0] if self._heap else None

    def process_timers(self) -> int:
        """
        Dispatch every timer due at the current clock time.

        Returns:
            Number of callbacks invoked
        """
        if self._dispatching:
            return 0

        self._dispatching = True
        fired = 0
        try:
            now = self._clock()
            while self._heap and self._heap[0][0] <= now:
                _, _, timer = heapq.heappop(self._heap)
                if timer.cancelled:
                    continue

                if timer.repeating:
                    # Re-armed before the callback so it can kill itself
                    timer.fire_time = now + timer.interval
                    self._push(timer)
                else:
                    self._timers.pop(timer.timer_id, None)

                timer.fire_count += 1
                fired += 1
                self._invoke(timer)
        finally:
            self._dispatching = False
            self._schedule_wakeup()
        return fired

    def clear(self) -> None:
        """Cancel every timer"""
        for timer in self._timers.values():
            timer.cancelled = True
        self._timers.clear()
        self._heap.clear()
        self._cancel_wakeup()

    def _invoke(self, timer: Timer) -> None:
        try:
            timer.callback(timer.timer_id)
        except Exception as e:
            logger.error(f"Timer {timer.timer_id} callback error: {e}")

    def _push(self, timer: Timer) -> None:
        heapq.heappush(self._heap, (timer.fire_time, next(self._seq), timer))

    def _discard_cancelled(self) -> None:
        while self._heap and self._heap[0][2].cancelled:
            heapq.heappop(self._heap)

    def _cancel_wakeup(self) -> None:
        if self._wakeup is not None:
            self._wakeup.cancel()
        self._wakeup = None
        self._wakeup_at = None

    def _schedule_wakeup(self) -> None:
        if self._dispatching:
            return

        deadline = self.next_deadline()
        if deadline is None:
            self._cancel_wakeup()
            return
        if self._wakeup is not None and self._wakeup_at == deadline:
            return
        if self._loop.is_closed():
            return

        self._cancel_wakeup()
        self._wakeup_at = deadline
        self._wakeup = self._loop.call_later(
            max(0.0, deadline - self._clock()), self._on_wakeup)

    def _on_wakeup(self) -> None:
        self._wakeup = None
        self._wakeup_at = None
        self.process_timers()
