"""Disk usage probers package."""

from .base import Prober
from .disk import DiskUsageProber, MountUsage

__all__ = ["DiskUsageProber", "MountUsage", "Prober"]
