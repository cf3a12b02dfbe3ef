"""Bus bindings translating inbound calls and signals into events."""

from concurrent.futures import Future
from typing import Any, Callable

import structlog

from diskmonitor.core.bus import (
    ACTIVITY_SIGNAL_INTERFACE,
    BOOT_DONE,
    BOOT_SIGNAL_INTERFACE,
    REQ_CHECK,
    REQUEST_INTERFACE,
    SERVICE_NAME,
    SYSTEM_INACTIVITY_IND,
    LocalBus,
    new_reply,
)
from diskmonitor.models import ActivityChanged, BootCompleted, CheckRequested

logger = structlog.get_logger()


class BusGateway:
    """Binds the disk monitor handlers whenever the bus is connected."""

    def __init__(self, bus: LocalBus, post: Callable[[Any], None]):
        """Initialize the gateway.

        Args:
            bus: Bus to bind handlers on
            post: Called with the event produced by each inbound call or signal
        """
        self.bus = bus
        self.post = post
        self.logger = logger.bind(component="BusGateway")
        self.methods_bound = False
        self.signals_bound = False
        self.methods = {REQ_CHECK: self.req_check}
        self.signals = [
            (BOOT_SIGNAL_INTERFACE, BOOT_DONE, self.boot_done_ind),
            (ACTIVITY_SIGNAL_INTERFACE, SYSTEM_INACTIVITY_IND, self.inactivity_ind),
        ]

    def attach(self) -> None:
        self.bus.add_listener(self)

    def on_connect(self) -> None:
        self.logger.debug("Bus connected, binding handlers")
        if not self.methods_bound:
            self.bus.bind_methods(SERVICE_NAME, REQUEST_INTERFACE, self.methods)
            self.methods_bound = True
        if not self.signals_bound:
            self.bus.bind_signals(self.signals)
            self.signals_bound = True

    def on_disconnect(self) -> None:
        self.logger.debug("Bus disconnected, unbinding handlers")
        if self.methods_bound:
            self.bus.unbind_methods(SERVICE_NAME, REQUEST_INTERFACE, self.methods)
            self.methods_bound = False
        if self.signals_bound:
            self.bus.unbind_signals(self.signals)
            self.signals_bound = False

    def req_check(self, sender: str = "") -> Future:
        self.logger.info(
            "Check request received over the bus", sender=sender or "(unknown)"
        )
        reply = new_reply()
        self.post(CheckRequested(reply=reply))
        return reply

    def boot_done_ind(self) -> None:
        self.logger.debug("Boot done signal received")
        self.post(BootCompleted())

    def inactivity_ind(self, inactive: int) -> None:
        self.logger.debug("Inactivity signal received", inactive=inactive)
        self.post(ActivityChanged(active=not inactive))
