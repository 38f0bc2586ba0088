"""
Explicitly owned event loop: an asyncio loop plus its timer scheduler.

Every TcpClient receives the EventLoop it runs on; there is no process-wide
default loop. Channel I/O and timer callbacks are all dispatched on the
thread running this loop.
"""

import asyncio
from typing import Any, Callable, Dict, Optional

from loguru import logger

from .timer import TimerCallback, TimerID, TimerScheduler


class EventLoop:
    """Single-threaded event loop with millisecond timers"""

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        clock: Optional[Callable[[], float]] = None,
        name: Optional[str] = None
    ):
        """
        Initialize the event loop.

        Args:
            loop: asyncio loop to drive; a new one is created (and owned) when omitted
            clock: Clock for the timer scheduler, seconds
            name: Loop name used in log messages
        """
        self._owns_loop = loop is None
        self._loop = loop or asyncio.new_event_loop()
        self._timers = TimerScheduler(self._loop, clock)
        self._name = name or "loop"

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def timers(self) -> TimerScheduler:
        return self._timers

    @property
    def name(self) -> str:
        return self._name

    def now(self) -> float:
        return self._timers.now()

    def is_running(self) -> bool:
        return self._loop.is_running()

    def is_closed(self) -> bool:
        return self._loop.is_closed()

    # Timers

    def set_timer(self, delay_ms: float, callback: TimerCallback, repeating: bool = False) -> TimerID:
        return self._timers.set_timer(delay_ms, callback, repeating)

    def set_timeout(self, delay_ms: float, callback: TimerCallback) -> TimerID:
        return self._timers.set_timeout(delay_ms, callback)

    def set_interval(self, interval_ms: float, callback: TimerCallback) -> TimerID:
        return self._timers.set_interval(interval_ms, callback)

    def kill_timer(self, timer_id: Optional[TimerID]) -> bool:
        return self._timers.kill_timer(timer_id)

    def reset_timer(self, timer_id: TimerID, delay_ms: Optional[float] = None) -> bool:
        return self._timers.reset_timer(timer_id, delay_ms)

    # Callbacks

    def queue_in_loop(self, callback: Callable[..., Any], *args: Any) -> asyncio.Handle:
        """Run callback on the next loop iteration"""
        return self._loop.call_soon(callback, *args)

    def run_in_loop(self, callback: Callable[..., Any], *args: Any) -> None:
        """Run callback now when already on the loop, otherwise queue it thread-safely"""
        if self._loop.is_running() and self._in_loop_thread():
            callback(*args)
        else:
            self._loop.call_soon_threadsafe(callback, *args)

    def _in_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    # Running

    def run(self) -> None:
        """Run until stop() is called"""
        if self._loop.is_running():
            raise RuntimeError(f"Event loop {self._name} is already running")

        logger.info(f"Event loop {self._name} started")
        try:
            self._loop.run_forever()
        finally:
            logger.info(f"Event loop {self._name} stopped")

    def run_for(self, duration_ms: float) -> None:
        """Run the loop for a fixed time, then return"""
        self._loop.call_later(duration_ms / 1000.0, self._loop.stop)
        self.run()

    def stop(self) -> None:
        """Stop a running loop; safe to call from other threads"""
        if self._in_loop_thread():
            self._loop.stop()
        else:
            self._loop.call_soon_threadsafe(self._loop.stop)

    def close(self) -> None:
        """Cancel all timers and close the asyncio loop if this object created it"""
        self._timers.clear()
        if self._owns_loop and not self._loop.is_closed():
            self._loop.close()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "name": self._name,
            "running": self._loop.is_running(),
            "closed": self._loop.is_closed(),
            "timers": len(self._timers),
            "next_deadline": self._timers.next_deadline(),
        }
