"""
Host Monitor - Telemetry Models

Readings and samples produced by the sampler and buffered by a session.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

Value = Union[int, float, str]


class SessionState(str, Enum):
    """Sampling session lifecycle state."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass(frozen=True)
class MetricReading:
    """One source's contribution to a sample: a value or an error, never both."""
    path: str
    value: Optional[Value] = None
    error: Optional[str] = None

    def __post_init__(self):
        if not self.path:
            raise ValueError("MetricReading requires a path")
        if (self.value is None) == (self.error is None):
            raise ValueError(f"MetricReading {self.path!r} needs exactly one of value or error")
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float, str, type(None))):
            raise TypeError(f"MetricReading {self.path!r} value must be a number or text")

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"path": self.path, "value": self.value}
        return {"path": self.path, "error": self.error}


@dataclass(frozen=True)
class Sample:
    """Timestamped set of readings captured in one tick."""
    timestamp: float
    readings: Tuple[MetricReading, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Accept any iterable but store a tuple so the sample stays immutable
        object.__setattr__(self, "readings", tuple(self.readings))

    @property
    def captured_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)

    def get(self, path: str) -> Optional[MetricReading]:
        """Look up a reading by metric path."""
        for reading in self.readings:
            if reading.path == path:
                return reading
        return None

    def values(self) -> Dict[str, Optional[Value]]:
        """Map of path to value, with None for failed readings."""
        return {r.path: r.value for r in self.readings}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.captured_at.isoformat(),
            "readings": [r.to_dict() for r in self.readings],
        }
