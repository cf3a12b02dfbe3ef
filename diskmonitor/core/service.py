"""Wiring of the disk monitor components into a runnable service."""

import time
from concurrent.futures import Future
from typing import Callable, Optional

import structlog

from diskmonitor.core.bus import (
    BOOT_DONE,
    BOOT_SIGNAL_INTERFACE,
    REQ_CHECK,
    REQUEST_INTERFACE,
    LocalBus,
)
from diskmonitor.core.control import ControlServer
from diskmonitor.core.dispatcher import EventLoop
from diskmonitor.core.gateway import BusGateway
from diskmonitor.core.heartbeat import DEFAULT_SLOT_SECONDS, TimerHeartbeat
from diskmonitor.core.relay import ResultRelay
from diskmonitor.core.scheduler import Scheduler, SchedulerState
from diskmonitor.models import BootCompleted
from diskmonitor.notifiers.notices import LogSink, NotificationSink
from diskmonitor.probes import DiskUsageProber, Prober

logger = structlog.get_logger()


class DiskMonitorService:
    """Owns the scheduler and its collaborators for the process lifetime."""

    def __init__(
        self,
        config: dict,
        bus: Optional[LocalBus] = None,
        prober: Optional[Prober] = None,
        clock: Callable[[], float] = time.time,
        control_socket: Optional[str] = None,
    ):
        """Initialize the service.

        Args:
            config: Application configuration dictionary
            bus: Bus to serve on, a private LocalBus if not given
            prober: Prober to use instead of the psutil based one
            clock: Source of the current time in seconds
            control_socket: Path of the control socket to serve, none if not given
        """
        self.config = config
        self.logger = logger.bind(component="DiskMonitorService")
        self.bus = bus or LocalBus()
        self.state = SchedulerState()

        self.relay = ResultRelay(self.bus)
        # The scheduler needs the prober and heartbeat, which post to the loop
        self.loop = EventLoop(scheduler=None, relay=self.relay)
        self.prober = prober or DiskUsageProber(
            self.loop.post, config.get("prober", {})
        )
        self.heartbeat = TimerHeartbeat(
            self.loop.post,
            slot_seconds=config.get("heartbeat", {}).get(
                "slot_seconds", DEFAULT_SLOT_SECONDS
            ),
            clock=clock,
        )
        self.scheduler = Scheduler(self.state, self.prober, self.heartbeat, clock=clock)
        self.loop.scheduler = self.scheduler

        self.gateway = BusGateway(self.bus, self.loop.post)
        self.gateway.attach()

        self.control = ControlServer(self.bus, control_socket) if control_socket else None

        self.bus.subscribe(LogSink())
        self.bus.subscribe(NotificationSink(config.get("notifications", [])))

    def start(self) -> None:
        """Connect to the bus, open the control socket and arm the first wakeup."""
        self.bus.connect()
        if self.control is not None:
            self.control.start()
        self.scheduler.start()
        if self.config.get("boot", {}).get("assume_completed", True):
            self.loop.post(BootCompleted())
        self.logger.info("Disk monitor started")

    def request_check(self, sender: str = "local") -> Future:
        """Call the check method on the bus.

        Returns:
            Future resolved once the check request has been handled

        Raises:
            BusError: If the bus is not connected
        """
        return self.bus.call_method(REQUEST_INTERFACE, REQ_CHECK, sender)

    def boot_completed(self) -> None:
        """Emit the boot completion signal on the bus."""
        self.bus.send_signal(BOOT_SIGNAL_INTERFACE, BOOT_DONE)

    def run_forever(self) -> None:
        self.loop.run_forever()

    def stop(self) -> None:
        self.heartbeat.cancel()
        if self.control is not None:
            self.control.stop()
        self.bus.disconnect()
        self.loop.stop()
        self.logger.info("Disk monitor stopped")
