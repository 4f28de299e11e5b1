"""
Host Monitor - Base Metric Source Interface

Every probe registered with the sampler implements this interface. A source
returns a single number or short text per call, or raises to signal that no
reading is available this tick.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from telemetry.models import Value


class MetricSource(ABC):
    """Base class for all metric sources."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    @property
    @abstractmethod
    def path(self) -> str:
        """Metric path (e.g., 'cpu.total_percent')."""
        pass

    @abstractmethod
    def sample(self) -> Value:
        """Read the metric once.

        Raise SourceFailure (or any exception) when no value is available.
        Implementations may keep private state between calls, such as the
        previous counter value for rate metrics.
        """
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.path}>"


class FunctionSource(MetricSource):
    """Adapter turning a plain callable into a metric source."""

    def __init__(self, path: str, func: Callable[[], Value], timeout: Optional[float] = None):
        super().__init__(timeout=timeout)
        self._path = path
        self._func = func

    @property
    def path(self) -> str:
        return self._path

    def sample(self) -> Value:
        return self._func()
