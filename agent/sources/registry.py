"""
Host Monitor - Source Registry

Builds the ordered list of metric sources from configuration.
"""

from typing import List, Optional, Set

import psutil
import structlog

from .base import MetricSource
from .system import (
    CpuPercentSource,
    DiskUsageSource,
    LoadAverageSource,
    MemorySource,
    NetworkRateSource,
    ProcessCountSource,
    SwapSource,
    TemperatureSource,
)

logger = structlog.get_logger(__name__)

DEFAULT_GROUPS = ["cpu", "memory", "disk", "network"]


def build_sources(config: dict) -> List[MetricSource]:
    """Create sources for every enabled group, in configured order."""
    source_config = config.get("sources", {})
    groups = source_config.get("enabled", DEFAULT_GROUPS)
    timeout = source_config.get("timeout")

    sources: List[MetricSource] = []
    seen: Set[str] = set()
    for group in groups:
        try:
            created = _create_group(group, source_config, timeout)
        except Exception as e:
            logger.exception("Failed to create source group", group=group, error=str(e))
            continue
        if created is None:
            logger.warning("Unknown source group", group=group)
            continue
        for source in created:
            if source.path in seen:
                logger.warning("Duplicate metric path skipped", group=group, path=source.path)
                continue
            seen.add(source.path)
            sources.append(source)

    logger.info("Metric sources registered", count=len(sources), paths=[s.path for s in sources])
    return sources


def _create_group(name: str, source_config: dict, timeout: Optional[float]) -> Optional[List[MetricSource]]:
    """Create the sources belonging to one group."""
    if name == "cpu":
        return [CpuPercentSource(timeout=timeout)]
    elif name == "load":
        return [LoadAverageSource(w, timeout=timeout) for w in ("1m", "5m", "15m")]
    elif name == "memory":
        return [MemorySource(f, timeout=timeout) for f in ("used_percent", "available_mb")]
    elif name == "swap":
        return [SwapSource(timeout=timeout)]
    elif name == "disk":
        mounts = source_config.get("disks") or _discover_mounts()
        return [DiskUsageSource(m, timeout=timeout) for m in mounts]
    elif name == "network":
        interfaces = source_config.get("interfaces") or _discover_interfaces()
        return [
            NetworkRateSource(iface, direction, timeout=timeout)
            for iface in interfaces
            for direction in NetworkRateSource.DIRECTIONS
        ]
    elif name == "processes":
        return [ProcessCountSource(timeout=timeout)]
    elif name == "temperature":
        return [TemperatureSource(timeout=timeout)]
    return None


def _discover_mounts() -> List[str]:
    """Physical partitions, skipping pseudo filesystems."""
    mounts = []
    for partition in psutil.disk_partitions(all=False):
        if "cdrom" in partition.opts or not partition.fstype:
            continue
        if partition.mountpoint not in mounts:
            mounts.append(partition.mountpoint)
    return mounts


def _discover_interfaces() -> List[str]:
    """Interfaces that are up, excluding loopback."""
    interfaces = []
    for iface, stats in psutil.net_if_stats().items():
        if not stats.isup or iface == "lo" or iface.lower().startswith("loopback"):
            continue
        interfaces.append(iface)
    return sorted(interfaces)
