"""Services package.

Infrastructure shared by the game core: the observer registry, the timer
backends that form the session timeline, and logging setup.
"""

from .event_bus import EventBus
from .logger import attach_timeline, cleanup_logging, setup_logging
from .timer_service import (
    AsyncioTimerService,
    ManualTimerService,
    RepeatingTimer,
    TimerHandle,
    TimerService,
)

__all__ = [
    "AsyncioTimerService",
    "EventBus",
    "ManualTimerService",
    "RepeatingTimer",
    "TimerHandle",
    "TimerService",
    "attach_timeline",
    "cleanup_logging",
    "setup_logging",
]
