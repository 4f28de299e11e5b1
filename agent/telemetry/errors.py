"""
Host Monitor - Telemetry Errors

Exception hierarchy for sampling sessions, metric sources and export.
"""


class HostMonitorError(Exception):
    """Base class for all host monitor errors."""


class InvalidConfiguration(HostMonitorError):
    """Session started with out-of-range settings or while already running."""


class Unavailable(HostMonitorError):
    """Data requested from a session that was never started."""


class SourceFailure(HostMonitorError):
    """A metric source could not produce a reading this tick."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class ExportError(HostMonitorError):
    """Export sink could not persist data."""
