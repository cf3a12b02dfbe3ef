"""Disk usage prober."""

from dataclasses import dataclass
from typing import Any, Callable

import psutil
import structlog

from diskmonitor.models import ProbeResult

from .base import Prober

logger = structlog.get_logger()

DEFAULT_MAX_USAGE_PERCENT = 90


@dataclass(frozen=True)
class MountUsage:
    """Usage of a mount point together with its reporting threshold."""

    mount_path: str
    percent_used: int
    max_usage_percent: int
    total_bytes: int
    used_bytes: int
    free_bytes: int

    @property
    def over_limit(self) -> bool:
        return self.percent_used >= self.max_usage_percent


class DiskUsageProber(Prober):
    """Report mount points whose usage reached their configured limit."""

    def __init__(self, post: Callable[[ProbeResult], None], config: dict[str, Any]):
        """Initialize disk usage prober.

        Args:
            post: Called with a ProbeResult for every mount over its limit
            config: Prober configuration dictionary
        """
        super().__init__(post)
        self.default_limit = config.get(
            "default_max_usage_percent", DEFAULT_MAX_USAGE_PERCENT
        )
        self.mounts = config.get("mounts") or []
        self.logger = logger.bind(component="DiskUsageProber")

    def _mount_limits(self) -> list[tuple[str, int]]:
        if self.mounts:
            return [
                (mount["path"], mount.get("max_usage_percent", self.default_limit))
                for mount in self.mounts
            ]
        # Nothing configured: watch every physical partition
        try:
            partitions = psutil.disk_partitions(all=False)
        except Exception as e:
            self.logger.error("Could not list partitions", error=str(e), exc_info=True)
            return []
        return [(partition.mountpoint, self.default_limit) for partition in partitions]

    def usage_snapshot(self) -> list[MountUsage]:
        """Collect usage of every watched mount, ignoring the limits.

        Mounts that cannot be read are logged and left out.
        """
        snapshot = []
        for path, limit in self._mount_limits():
            try:
                usage = psutil.disk_usage(path)
            except (OSError, PermissionError) as e:
                self.logger.warning(
                    "Could not read disk usage", mount_path=path, error=str(e)
                )
                continue

            percent = min(100, max(0, int(round(usage.percent))))
            snapshot.append(
                MountUsage(
                    mount_path=path,
                    percent_used=percent,
                    max_usage_percent=limit,
                    total_bytes=usage.total,
                    used_bytes=usage.used,
                    free_bytes=usage.free,
                )
            )
        return snapshot

    def check_disk_space_usage(self) -> None:
        snapshot = self.usage_snapshot()
        reported = 0
        for usage in snapshot:
            if not usage.over_limit:
                continue
            self.logger.info(
                "Disk usage over limit",
                mount_path=usage.mount_path,
                percent_used=usage.percent_used,
                limit=usage.max_usage_percent,
            )
            self.post(ProbeResult(usage.mount_path, usage.percent_used))
            reported += 1

        self.logger.debug(
            "Disk space check completed", mounts=len(snapshot), reported=reported
        )
