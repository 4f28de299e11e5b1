"""
Host Monitor - Telemetry Package

Periodic sampling engine: sampler, session and their data types.
"""

from .errors import (
    ExportError,
    HostMonitorError,
    InvalidConfiguration,
    SourceFailure,
    Unavailable,
)
from .models import MetricReading, Sample, SessionState
from .sampler import Sampler
from .session import Session, SessionLimits

__all__ = [
    "Sampler",
    "Session",
    "SessionLimits",
    "SessionState",
    "MetricReading",
    "Sample",
    "HostMonitorError",
    "InvalidConfiguration",
    "Unavailable",
    "SourceFailure",
    "ExportError",
]
