"""
Single-threaded event loop and timer scheduling.
"""

from .timer import Timer, TimerID, TimerScheduler
from .loop import EventLoop

__all__ = [
    "EventLoop",
    "Timer",
    "TimerID",
    "TimerScheduler",
]
