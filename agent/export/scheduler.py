"""
Host Monitor - Periodic Exporter

Exports a full system snapshot on a fixed schedule, independently of the
sampling loop so a slow export never delays metric collection.
"""

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from inventory import get_system_snapshot
from telemetry.errors import InvalidConfiguration
from .sink import ExportSink

logger = structlog.get_logger(__name__)


class PeriodicExporter:
    """Background task writing a snapshot every `every` seconds."""

    def __init__(
        self,
        sink: ExportSink,
        every: int,
        snapshot: Callable[[], Awaitable[Dict[str, Any]]] = get_system_snapshot,
    ):
        if every <= 0:
            raise InvalidConfiguration(f"Export period must be a positive number of seconds, got {every!r}")
        self._sink = sink
        self._every = every
        self._snapshot = snapshot

        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._exported: List[Path] = []

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def exported(self) -> List[Path]:
        """Paths written so far."""
        return list(self._exported)

    async def start(self) -> None:
        """Start the export loop."""
        if self._running:
            return
        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._export_loop())
        logger.info("Periodic export started", every=self._every)

    async def stop(self) -> None:
        """Stop the export loop, waiting for an in-flight export to finish."""
        if not self._running:
            return
        self._running = False
        self._stop_event.set()

        if self._task:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Periodic export stopped", exported=len(self._exported))

    async def _export_loop(self) -> None:
        while self._running:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._every)
                break
            except asyncio.TimeoutError:
                pass

            try:
                data = await self._snapshot()
                path = await asyncio.to_thread(self._sink.export, data, None, "snapshot")
                self._exported.append(path)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Periodic export error", error=str(e))
