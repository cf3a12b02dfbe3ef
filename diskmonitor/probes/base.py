"""Base prober class."""

from abc import ABC, abstractmethod
from typing import Callable

from diskmonitor.models import ProbeResult


class Prober(ABC):
    """Base class for disk usage probers.

    Results are handed to ``post`` instead of being returned, so the caller
    triggering a probe is never tied to the results it produces.
    """

    def __init__(self, post: Callable[[ProbeResult], None]):
        """Initialize prober.

        Args:
            post: Called once for every result worth reporting
        """
        self.post = post

    @abstractmethod
    def check_disk_space_usage(self) -> None:
        """Scan disk usage and post results."""
        pass
