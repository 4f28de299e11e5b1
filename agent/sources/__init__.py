"""
Host Monitor - Sources Package

Metric sources probe one value each per tick:
- CpuPercentSource, LoadAverageSource: processor utilisation and load
- MemorySource, SwapSource: memory pressure
- DiskUsageSource: per-mount space usage
- NetworkRateSource: per-interface throughput
- ProcessCountSource, TemperatureSource: misc host health
"""

from .base import FunctionSource, MetricSource
from .registry import build_sources

__all__ = [
    "MetricSource",
    "FunctionSource",
    "build_sources",
]
