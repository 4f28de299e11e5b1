"""
Host Monitor - Sampler

Runs one collection tick: invokes every registered source once and assembles
a timestamped Sample. A failing source is recorded as an error reading and
never aborts the tick.
"""

import asyncio
import time
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional

import psutil
import structlog

from .errors import InvalidConfiguration, SourceFailure
from .models import MetricReading, Sample

if TYPE_CHECKING:
    from sources.base import MetricSource

logger = structlog.get_logger(__name__)


class Sampler:
    """Collects one Sample per call from an ordered set of sources."""

    def __init__(
        self,
        sources: Iterable["MetricSource"],
        default_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._sources: List["MetricSource"] = list(sources)
        self._default_timeout = default_timeout
        self._clock = clock

        paths = [s.path for s in self._sources]
        duplicates = {p for p in paths if paths.count(p) > 1}
        if duplicates:
            raise InvalidConfiguration(f"Duplicate metric paths: {sorted(duplicates)}")

    @property
    def sources(self) -> List["MetricSource"]:
        return list(self._sources)

    @property
    def paths(self) -> List[str]:
        return [s.path for s in self._sources]

    async def collect(self) -> Sample:
        """Invoke every source once, in registration order."""
        timestamp = self._clock()
        readings = []
        for source in self._sources:
            readings.append(await self._read(source))

        failed = sum(1 for r in readings if not r.ok)
        if failed:
            logger.debug("Tick collected with failures", failed=failed, total=len(readings))
        return Sample(timestamp=timestamp, readings=tuple(readings))

    async def _read(self, source: "MetricSource") -> MetricReading:
        """Read one source, turning any failure into an error reading."""
        path = source.path
        timeout = source.timeout if source.timeout is not None else self._default_timeout

        try:
            call = asyncio.to_thread(source.sample)
            if timeout:
                value = await asyncio.wait_for(call, timeout=timeout)
            else:
                value = await call

            if value is None:
                raise SourceFailure(path, "no data")
            return MetricReading(path=path, value=value)

        except asyncio.CancelledError:
            raise
        except SourceFailure as e:
            return MetricReading(path=path, error=e.reason)
        except asyncio.TimeoutError:
            logger.warning("Metric source timed out", path=path, timeout=timeout)
            return MetricReading(path=path, error=f"timed out after {timeout}s")
        except (PermissionError, psutil.AccessDenied) as e:
            return MetricReading(path=path, error=f"access denied: {e}")
        except Exception as e:
            logger.warning("Metric source failed", path=path, error=str(e))
            return MetricReading(path=path, error=f"{type(e).__name__}: {e}")
