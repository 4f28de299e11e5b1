"""
Host Monitor - Export Package

JSON export of samples and snapshots, one-off or on a schedule.
"""

from .scheduler import PeriodicExporter
from .sink import ExportSink

__all__ = ["ExportSink", "PeriodicExporter"]
