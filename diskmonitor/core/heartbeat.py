"""Timer based heartbeat service delivering scheduled wakeups."""

import math
import threading
import time
from typing import Callable, Optional

import structlog

from diskmonitor.models import ScheduleRequest, WakeupFired

logger = structlog.get_logger()

DEFAULT_SLOT_SECONDS = 30


def wakeup_delay(request: ScheduleRequest, now: float, slot_seconds: int) -> float:
    """Pick the delay for a wakeup inside the requested window.

    The wakeup is placed on the first slot boundary at or after the minimum
    delay, so that wakeups of different subsystems can share the same
    moment. If no boundary falls inside the window the minimum is used.

    Args:
        request: Window for the wakeup
        now: Current wall clock time in seconds
        slot_seconds: Alignment granularity, 0 disables alignment

    Returns:
        Delay in seconds from now
    """
    earliest = now + request.min_delay_seconds
    if slot_seconds <= 0:
        return float(request.min_delay_seconds)

    aligned = math.ceil(earliest / slot_seconds) * slot_seconds
    if aligned - now <= request.max_delay_seconds:
        return aligned - now
    return float(request.min_delay_seconds)


class TimerHeartbeat:
    """Fires exactly one wakeup for the most recent schedule request."""

    def __init__(
        self,
        post: Callable[[WakeupFired], None],
        slot_seconds: int = DEFAULT_SLOT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the heartbeat.

        Args:
            post: Called with a WakeupFired event when the timer expires
            slot_seconds: Alignment granularity for wakeups
            clock: Source of the current time in seconds
        """
        self.post = post
        self.slot_seconds = slot_seconds
        self.clock = clock
        self.logger = logger.bind(component="TimerHeartbeat")
        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None

    def schedule_wakeup(self, request: ScheduleRequest) -> float:
        """Replace any pending wakeup with one for the given window.

        Returns:
            Delay in seconds until the wakeup fires
        """
        delay = wakeup_delay(request, self.clock(), self.slot_seconds)
        timer = threading.Timer(delay, self._fire)
        timer.daemon = True

        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = timer
            timer.start()

        self.logger.debug(
            "Wakeup armed",
            delay=delay,
            min_delay=request.min_delay_seconds,
            max_delay=request.max_delay_seconds,
        )
        return delay

    def _fire(self) -> None:
        with self._lock:
            if self._timer is not threading.current_thread():
                # Superseded while waiting for the lock
                return
            self._timer = None
        self.logger.debug("Wakeup fired")
        self.post(WakeupFired())

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None
