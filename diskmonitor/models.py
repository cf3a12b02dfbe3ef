"""Event and value types exchanged between the disk monitor components."""

from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Optional, Union

# Added to every wakeup interval so the heartbeat can coalesce wakeups
WAKEUP_SLACK = 120


@dataclass(frozen=True)
class WakeupFired:
    """The previously scheduled heartbeat wakeup fired."""


@dataclass(frozen=True)
class BootCompleted:
    """The boot sequence of the device finished."""


@dataclass(frozen=True)
class ActivityChanged:
    """The device activity signal was observed."""

    active: bool


@dataclass(frozen=True)
class CheckRequested:
    """An on-demand disk space check was requested.

    The reply future is resolved by the event loop once the scheduler has
    handled the request.
    """

    reply: Optional[Future] = field(default=None, compare=False)


SchedulerEvent = Union[WakeupFired, BootCompleted, ActivityChanged, CheckRequested]


@dataclass(frozen=True)
class ProbeResult:
    """Usage of a single mount point reported by a prober."""

    mount_path: str
    percent_used: int

    def __post_init__(self):
        if not 0 <= self.percent_used <= 100:
            raise ValueError(
                f"percent_used out of range for {self.mount_path}: {self.percent_used}"
            )


@dataclass(frozen=True)
class ScheduleRequest:
    """Window in which the heartbeat service must deliver the next wakeup."""

    min_delay_seconds: int
    max_delay_seconds: int

    @classmethod
    def for_interval(cls, interval: int) -> "ScheduleRequest":
        return cls(min_delay_seconds=interval, max_delay_seconds=interval + WAKEUP_SLACK)


@dataclass(frozen=True)
class DiskSpaceSignal:
    """Outbound disk space change notification."""

    interface: str
    name: str
    mount_path: str
    percent_used: int

    def to_dict(self) -> dict:
        """Convert signal to dictionary."""
        return {
            "interface": self.interface,
            "name": self.name,
            "mount_path": self.mount_path,
            "percent_used": self.percent_used,
        }
