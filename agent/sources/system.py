"""
Host Monitor - psutil Metric Sources

Probes for CPU, memory, swap, disk, network and process metrics.
"""

import time
from typing import Dict, Optional, Tuple

import psutil
import structlog

from telemetry.errors import SourceFailure
from .base import MetricSource

logger = structlog.get_logger(__name__)

MB = 1024 * 1024


class CpuPercentSource(MetricSource):
    """Overall CPU utilisation since the previous call."""

    def __init__(self, timeout: Optional[float] = None):
        super().__init__(timeout=timeout)
        # First non-blocking call always returns 0.0, prime the counter
        psutil.cpu_percent(interval=None)

    @property
    def path(self) -> str:
        return "cpu.total_percent"

    def sample(self) -> float:
        return psutil.cpu_percent(interval=None)


class LoadAverageSource(MetricSource):
    """System load average over 1, 5 or 15 minutes."""

    _WINDOWS = {"1m": 0, "5m": 1, "15m": 2}

    def __init__(self, window: str = "1m", timeout: Optional[float] = None):
        super().__init__(timeout=timeout)
        if window not in self._WINDOWS:
            raise ValueError(f"Unknown load window: {window}")
        self.window = window

    @property
    def path(self) -> str:
        return f"cpu.load_{self.window}"

    def sample(self) -> float:
        return psutil.getloadavg()[self._WINDOWS[self.window]]


class MemorySource(MetricSource):
    """Virtual memory usage."""

    FIELDS = ("used_percent", "available_mb", "used_mb")

    def __init__(self, field: str = "used_percent", timeout: Optional[float] = None):
        super().__init__(timeout=timeout)
        if field not in self.FIELDS:
            raise ValueError(f"Unknown memory field: {field}")
        self.field = field

    @property
    def path(self) -> str:
        return f"memory.{self.field}"

    def sample(self) -> float:
        mem = psutil.virtual_memory()
        if self.field == "used_percent":
            return mem.percent
        if self.field == "available_mb":
            return round(mem.available / MB, 2)
        return round(mem.used / MB, 2)


class SwapSource(MetricSource):
    """Swap usage percentage."""

    @property
    def path(self) -> str:
        return "swap.used_percent"

    def sample(self) -> float:
        return psutil.swap_memory().percent


class DiskUsageSource(MetricSource):
    """Used space percentage of one mount point."""

    def __init__(self, mountpoint: str, timeout: Optional[float] = None):
        super().__init__(timeout=timeout)
        self.mountpoint = mountpoint

    @property
    def path(self) -> str:
        return f"disk.{mount_label(self.mountpoint)}.used_percent"

    def sample(self) -> float:
        try:
            return psutil.disk_usage(self.mountpoint).percent
        except (PermissionError, FileNotFoundError, OSError) as e:
            raise SourceFailure(self.path, str(e)) from e


class NetworkRateSource(MetricSource):
    """Bytes per second received or sent on one interface.

    Keeps the previous counter reading privately and reports the delta rate.
    """

    DIRECTIONS = ("rx", "tx")

    def __init__(self, iface: str, direction: str = "rx", timeout: Optional[float] = None):
        super().__init__(timeout=timeout)
        if direction not in self.DIRECTIONS:
            raise ValueError(f"Unknown network direction: {direction}")
        self.iface = iface
        self.direction = direction
        self._last: Optional[Tuple[float, int]] = None
        try:
            self._last = (time.monotonic(), self._read_counter())
        except SourceFailure:
            logger.debug("Interface not present at startup", iface=iface)

    @property
    def path(self) -> str:
        return f"net.{self.iface}.{self.direction}_bytes_per_sec"

    def _read_counter(self) -> int:
        counters = psutil.net_io_counters(pernic=True).get(self.iface)
        if counters is None:
            raise SourceFailure(self.path, f"interface {self.iface} not found")
        return counters.bytes_recv if self.direction == "rx" else counters.bytes_sent

    def sample(self) -> float:
        now = time.monotonic()
        value = self._read_counter()
        previous = self._last
        self._last = (now, value)

        if previous is None:
            raise SourceFailure(self.path, "no previous reading")

        elapsed = now - previous[0]
        delta = value - previous[1]
        if elapsed <= 0 or delta < 0:
            # Counter wrapped or interface was reset
            raise SourceFailure(self.path, "counter reset")
        return round(delta / elapsed, 2)


class ProcessCountSource(MetricSource):
    """Number of running processes."""

    @property
    def path(self) -> str:
        return "processes.count"

    def sample(self) -> int:
        return len(psutil.pids())


class TemperatureSource(MetricSource):
    """CPU temperature in Celsius, where the platform exposes sensors."""

    SENSOR_NAMES = ("cpu_thermal", "coretemp", "k10temp", "acpitz")

    @property
    def path(self) -> str:
        return "cpu.temperature_c"

    def sample(self) -> float:
        read_temps = getattr(psutil, "sensors_temperatures", None)
        if read_temps is None:
            raise SourceFailure(self.path, "temperature sensors not supported on this platform")

        temps: Dict = read_temps()
        for name in self.SENSOR_NAMES:
            readings = temps.get(name)
            if readings:
                return readings[0].current
        raise SourceFailure(self.path, "no CPU temperature sensor found")


def mount_label(mountpoint: str) -> str:
    """Turn a mount point into a metric path segment ('/' -> 'root', 'C:\\' -> 'C').

    Separators become '_'; literal '_' and '-' are escaped as '-_' and '--'
    so distinct mount points never share a label.
    """
    label = mountpoint.replace("\\", "/").strip("/").replace(":", "")
    label = "".join(
        "--" if ch == "-" else "-_" if ch == "_" else "_" if ch == "/" else ch
        for ch in label
    )
    return label or "root"
