"""Single-threaded event loop feeding the scheduler and the result relay."""

import queue
import threading
from typing import Any, Optional

import structlog

from diskmonitor.core.relay import ResultRelay
from diskmonitor.core.scheduler import Scheduler
from diskmonitor.models import (
    ActivityChanged,
    BootCompleted,
    CheckRequested,
    ProbeResult,
    WakeupFired,
)

logger = structlog.get_logger()

SCHEDULER_EVENTS = (WakeupFired, BootCompleted, ActivityChanged, CheckRequested)


class EventLoop:
    """Processes events one at a time, in the order they were posted.

    ``post`` may be called from any thread. Handlers only ever run on the
    thread calling ``run_forever`` or ``run_pending``.
    """

    def __init__(self, scheduler: Optional[Scheduler], relay: ResultRelay):
        """Initialize the event loop.

        Args:
            scheduler: Receives trigger events, may be attached later
            relay: Receives probe results
        """
        self.scheduler = scheduler
        self.relay = relay
        self.logger = logger.bind(component="EventLoop")
        self._queue: "queue.SimpleQueue[Any]" = queue.SimpleQueue()
        self._stopped = threading.Event()

    def post(self, event: Any) -> None:
        self._queue.put(event)

    def dispatch(self, event: Any) -> None:
        """Run the handler for a single event to completion."""
        try:
            if isinstance(event, ProbeResult):
                self.relay.relay(event)
            elif isinstance(event, SCHEDULER_EVENTS):
                self.scheduler.handle(event)
            else:
                self.logger.warning("Dropping unknown event", event_repr=repr(event))
        except Exception as e:
            self.logger.error(
                "Error handling event",
                event_type=type(event).__name__,
                error=str(e),
                exc_info=True,
            )
            if isinstance(event, CheckRequested) and event.reply is not None:
                event.reply.set_exception(e)
            return

        if isinstance(event, CheckRequested) and event.reply is not None:
            event.reply.set_result(None)

    def run_pending(self) -> int:
        """Dispatch every queued event, including events posted meanwhile.

        Returns:
            Number of events dispatched
        """
        count = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return count
            self.dispatch(event)
            count += 1

    def run_forever(self, poll_interval: float = 1.0) -> None:
        """Dispatch events until ``stop`` is called."""
        self._stopped.clear()
        self.logger.info("Event loop started")
        while not self._stopped.is_set():
            try:
                event = self._queue.get(timeout=poll_interval)
            except queue.Empty:
                continue
            self.dispatch(event)
        self.logger.info("Event loop stopped")

    def stop(self) -> None:
        self._stopped.set()
