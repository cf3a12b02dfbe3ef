"""Activity aware scheduling of disk space checks."""

import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import structlog

from diskmonitor.models import (
    ActivityChanged,
    BootCompleted,
    CheckRequested,
    ScheduleRequest,
    SchedulerEvent,
    WakeupFired,
)

logger = structlog.get_logger()

ACTIVE_INTERVAL = 300  # 5 minutes
IDLE_INTERVAL = 1800  # 30 minutes
STALE_THRESHOLD = 900  # 15 minutes


class ProbeTrigger(Protocol):
    def check_disk_space_usage(self) -> None: ...


class WakeupScheduler(Protocol):
    def schedule_wakeup(self, request: ScheduleRequest) -> None: ...


@dataclass
class SchedulerState:
    """Mutable scheduling state, owned by a single Scheduler."""

    boot_completed: bool = False
    device_active: bool = False
    last_check_time: Optional[float] = None  # None until the first probe


class Scheduler:
    """Decides when to probe disk usage and when to be woken up next.

    Every public handler corresponds to one inbound trigger. Handlers are
    expected to be called from a single dispatch thread, one at a time.
    """

    def __init__(
        self,
        state: SchedulerState,
        prober: ProbeTrigger,
        heartbeat: WakeupScheduler,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the scheduler.

        Args:
            state: Scheduling state constructed once at startup
            prober: Collaborator that performs the disk scan
            heartbeat: Collaborator that delivers future wakeups
            clock: Source of the current time in seconds
        """
        self.state = state
        self.prober = prober
        self.heartbeat = heartbeat
        self.clock = clock
        self.logger = logger.bind(component="Scheduler")

    def check_interval(self) -> int:
        """Return the wakeup interval for the current activity state."""
        return ACTIVE_INTERVAL if self.state.device_active else IDLE_INTERVAL

    def schedule_next_wakeup(self) -> ScheduleRequest:
        request = ScheduleRequest.for_interval(self.check_interval())
        self.logger.debug(
            "Scheduling next wakeup",
            min_delay=request.min_delay_seconds,
            max_delay=request.max_delay_seconds,
            device_active=self.state.device_active,
        )
        self.heartbeat.schedule_wakeup(request)
        return request

    def trigger_probe_if_allowed(self) -> bool:
        """Run a disk space probe unless boot has not completed yet.

        Returns:
            True if the prober was invoked, False if the probe was suppressed
        """
        if not self.state.boot_completed:
            self.logger.debug("Boot not completed, skipping disk space check")
            return False

        now = self.clock()
        self.prober.check_disk_space_usage()
        if self.state.last_check_time is None or now > self.state.last_check_time:
            self.state.last_check_time = now
        return True

    def start(self) -> ScheduleRequest:
        """Arm the first wakeup."""
        self.logger.info("Scheduler started", interval=self.check_interval())
        return self.schedule_next_wakeup()

    def on_wakeup_fired(self) -> None:
        try:
            self.trigger_probe_if_allowed()
        finally:
            self.schedule_next_wakeup()

    def on_boot_completed(self) -> None:
        if not self.state.boot_completed:
            self.logger.info("Boot completed, disk space checks enabled")
        self.state.boot_completed = True

    def on_activity_changed(self, active: bool) -> None:
        """Track the device activity state and adjust the wakeup schedule.

        A repeated signal with an unchanged state leaves the schedule alone.
        Becoming active after a long quiet period probes right away instead
        of waiting for the next wakeup.

        Args:
            active: True if the device is now in active use
        """
        if active == self.state.device_active:
            return

        self.state.device_active = active
        if self.state.last_check_time is None:
            since_last_check = float("inf")
        else:
            since_last_check = self.clock() - self.state.last_check_time

        self.logger.debug(
            "Device activity changed",
            device_active=active,
            since_last_check=since_last_check,
        )

        if active and since_last_check >= STALE_THRESHOLD:
            self.logger.debug(
                "Last check is stale, checking",
                since_last_check=since_last_check,
                threshold=STALE_THRESHOLD,
            )
            try:
                self.trigger_probe_if_allowed()
            finally:
                self.schedule_next_wakeup()
            return

        self.schedule_next_wakeup()

    def on_explicit_check_requested(self) -> None:
        self.logger.info("Check requested")
        self.trigger_probe_if_allowed()

    def handle(self, event: SchedulerEvent) -> None:
        """Dispatch a trigger event to its handler."""
        if isinstance(event, WakeupFired):
            self.on_wakeup_fired()
        elif isinstance(event, BootCompleted):
            self.on_boot_completed()
        elif isinstance(event, ActivityChanged):
            self.on_activity_changed(event.active)
        elif isinstance(event, CheckRequested):
            self.on_explicit_check_requested()
        else:
            raise TypeError(f"Unsupported scheduler event: {event!r}")
