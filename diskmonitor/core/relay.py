"""Relay of probe results to the bus."""

import structlog

from diskmonitor.core.bus import DISK_SPACE_CHANGE_IND, SIGNAL_INTERFACE, LocalBus
from diskmonitor.models import DiskSpaceSignal, ProbeResult

logger = structlog.get_logger()


class ResultRelay:
    """Publishes one disk space change signal per probe result."""

    def __init__(self, bus: LocalBus):
        self.bus = bus
        self.logger = logger.bind(component="ResultRelay")

    def relay(self, result: ProbeResult) -> DiskSpaceSignal:
        signal = DiskSpaceSignal(
            interface=SIGNAL_INTERFACE,
            name=DISK_SPACE_CHANGE_IND,
            mount_path=result.mount_path,
            percent_used=result.percent_used,
        )
        self.logger.debug(
            "Relaying disk space change",
            mount_path=result.mount_path,
            percent_used=result.percent_used,
        )
        self.bus.emit_signal(signal)
        return signal
