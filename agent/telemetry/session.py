"""
Host Monitor - Sampling Session

Runs a bounded-duration, fixed-interval collection loop in a background task
and buffers the resulting samples in memory. Callers start and stop the
session and read snapshots of the buffer while the loop is running.

Stopping is cooperative: the loop checks for cancellation before each tick
and during the wait between ticks. A tick that is already collecting runs to
completion, so stop() latency is bounded by the slowest source (or its
timeout, when one is configured). A sample finished after stop() was called
is discarded, so the buffer only grows while the session is running.
"""

import asyncio
import dataclasses
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import structlog

from .errors import InvalidConfiguration, Unavailable
from .models import Sample, SessionState
from .sampler import Sampler

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SessionLimits:
    """Accepted ranges for interval and duration, in seconds."""
    min_interval: int = 1
    max_interval: int = 3600
    min_duration: int = 10
    max_duration: int = 86400

    def __post_init__(self):
        if self.min_interval < 1:
            raise InvalidConfiguration(f"min_interval must be at least 1 second, got {self.min_interval}")
        if self.min_duration < 1:
            raise InvalidConfiguration(f"min_duration must be at least 1 second, got {self.min_duration}")
        if self.min_interval > self.max_interval:
            raise InvalidConfiguration(
                f"min_interval {self.min_interval} is greater than max_interval {self.max_interval}"
            )
        if self.min_duration > self.max_duration:
            raise InvalidConfiguration(
                f"min_duration {self.min_duration} is greater than max_duration {self.max_duration}"
            )

    @classmethod
    def from_config(cls, config: dict) -> "SessionLimits":
        limits = config.get("session", {}).get("limits", {})
        try:
            values = {f.name: int(limits[f.name]) for f in dataclasses.fields(cls) if f.name in limits}
        except (TypeError, ValueError) as e:
            raise InvalidConfiguration(f"Invalid session limits: {e}") from e
        return cls(**values)

    def validate(self, interval: int, duration: int) -> None:
        """Raise InvalidConfiguration if interval or duration is out of range."""
        for name, value in (("interval", interval), ("duration", duration)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidConfiguration(f"{name} must be an integer number of seconds, got {value!r}")

        if not self.min_interval <= interval <= self.max_interval:
            raise InvalidConfiguration(
                f"interval must be between {self.min_interval} and {self.max_interval} seconds, got {interval}"
            )
        if not self.min_duration <= duration <= self.max_duration:
            raise InvalidConfiguration(
                f"duration must be between {self.min_duration} and {self.max_duration} seconds, got {duration}"
            )


class Session:
    """Owns one sampling loop and the samples it produces."""

    def __init__(
        self,
        sampler: Sampler,
        limits: Optional[SessionLimits] = None,
        on_sample: Optional[Callable[[Sample], None]] = None,
    ):
        self._sampler = sampler
        self._limits = limits or SessionLimits()
        self._on_sample = on_sample

        self._state = SessionState.IDLE
        self._samples: List[Sample] = []
        self._lock = threading.Lock()
        self._cancel: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

        self._interval: Optional[int] = None
        self._duration: Optional[int] = None
        self._started_at: Optional[datetime] = None
        self._error: Optional[BaseException] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state in (SessionState.RUNNING, SessionState.STOPPING)

    @property
    def interval(self) -> Optional[int]:
        return self._interval

    @property
    def duration(self) -> Optional[int]:
        return self._duration

    @property
    def error(self) -> Optional[BaseException]:
        """Exception that ended the last run early, if any."""
        return self._error

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def deadline(self) -> Optional[datetime]:
        if self._started_at is None:
            return None
        return self._started_at + timedelta(seconds=self._duration)

    async def start(self, interval: int, duration: int) -> None:
        """Validate settings and launch the collection loop. Returns immediately."""
        if self.is_running:
            raise InvalidConfiguration(f"Session already {self._state.value}")
        self._limits.validate(interval, duration)

        with self._lock:
            self._samples = []
        self._interval = interval
        self._duration = duration
        self._started_at = datetime.now(timezone.utc)
        self._error = None
        self._cancel = asyncio.Event()
        self._state = SessionState.RUNNING
        self._task = asyncio.create_task(self._collection_loop())

        logger.info("Sampling session started", interval=interval, duration=duration,
                    sources=len(self._sampler.paths))

    async def stop(self) -> List[Sample]:
        """Cancel the loop, wait for it to exit and return the final samples."""
        if self._state == SessionState.IDLE:
            return self._snapshot()
        if self._state == SessionState.STOPPED:
            # Collect the finished task so a crashed loop is never silently dropped
            if self._task and self._task.done():
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            return self._snapshot()

        self._state = SessionState.STOPPING
        self._cancel.set()

        if self._task:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        self._state = SessionState.STOPPED
        samples = self._snapshot()
        logger.info("Sampling session stopped", samples=len(samples))
        return samples

    async def wait(self) -> List[Sample]:
        """Wait for the session to reach its deadline and return the samples."""
        if self._task:
            await asyncio.shield(self._task)
        return self._snapshot()

    def get_data(self) -> List[Sample]:
        """Snapshot of the samples collected so far. Never blocks on the loop."""
        if self._state == SessionState.IDLE:
            raise Unavailable("Session has not been started")
        return self._snapshot()

    def _snapshot(self) -> List[Sample]:
        with self._lock:
            return list(self._samples)

    def _append(self, sample: Sample) -> None:
        with self._lock:
            if self._samples and sample.timestamp <= self._samples[-1].timestamp:
                # Wall clock stepped backwards, keep the sequence ordered
                logger.warning("Sample timestamp not increasing, adjusting",
                               timestamp=sample.timestamp, previous=self._samples[-1].timestamp)
                sample = dataclasses.replace(sample, timestamp=self._samples[-1].timestamp + 1e-6)
            self._samples.append(sample)

        if self._on_sample:
            try:
                self._on_sample(sample)
            except Exception as e:
                logger.exception("Sample callback failed", error=str(e))

    async def _collection_loop(self) -> None:
        """Collect one sample per interval until the deadline or cancellation."""
        loop = asyncio.get_running_loop()
        begin = loop.time()
        deadline = begin + self._duration
        interval = self._interval
        tick = 0

        try:
            while self._state == SessionState.RUNNING and not self._cancel.is_set():
                scheduled = begin + tick * interval
                # Skip a tick whose window would run past the deadline
                if scheduled + interval > deadline or loop.time() >= deadline:
                    await self._wait_until(deadline)
                    break

                try:
                    sample = await self._sampler.collect()
                    if self._cancel.is_set():
                        logger.debug("Discarding sample collected after stop", tick=tick)
                        break
                    self._append(sample)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.exception("Collection error", tick=tick, error=str(e))

                tick += 1
                behind = int((loop.time() - begin) // interval)
                if behind > tick:
                    logger.warning("Collection overran interval, skipping ticks", skipped=behind - tick)
                    tick = behind
                await self._wait_until(begin + tick * interval)

        except Exception as e:
            self._error = e
            logger.exception("Collection loop crashed", tick=tick, error=str(e))
        finally:
            self._state = SessionState.STOPPED
            logger.info("Collection loop finished", ticks=tick, cancelled=self._cancel.is_set())

    async def _wait_until(self, when: float) -> None:
        """Sleep until the given loop time, waking early on cancellation."""
        timeout = when - asyncio.get_running_loop().time()
        if timeout <= 0:
            return
        try:
            await asyncio.wait_for(self._cancel.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
