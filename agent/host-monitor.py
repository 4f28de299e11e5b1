#!/usr/bin/env python3
"""
Host Monitor - Agent

Collects host telemetry and provides:
- Periodic sampling of CPU, memory, disk and network metrics for a fixed duration
- Ad-hoc system snapshots (host, CPU, memory, disks, network, processes, services)
- Process and service listings
- JSON export of samples and snapshots, one-off or on a schedule

Usage:
    python3 host-monitor.py --monitor [--interval 5] [--duration 300] [--export [PATH]]
    python3 host-monitor.py --snapshot [--export [PATH]]
    python3 host-monitor.py --processes [--top 20]
    python3 host-monitor.py --services
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

import structlog
import yaml

from export import ExportSink, PeriodicExporter
from inventory import get_system_snapshot, list_processes, list_services
from sources import build_sources
from telemetry import (
    ExportError,
    InvalidConfiguration,
    Sample,
    Sampler,
    Session,
    SessionLimits,
)

logger = structlog.get_logger(__name__)

VERSION = "1.0.0"


def configure_logging(level: str = "INFO", pretty: bool = False) -> None:
    """Configure structured logging to stderr."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        stream=sys.stderr,
    )
    renderer = structlog.dev.ConsoleRenderer() if pretty else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def default_config() -> dict:
    """Return default configuration."""
    return {
        "agent": {"name": "host-monitor", "version": VERSION},
        "session": {"interval": 5, "duration": 300},
        "sources": {"enabled": ["cpu", "memory", "disk", "network"], "timeout": 10},
        "export": {"dir": "exports", "every": 0},
        "snapshot": {"top_processes": 10, "include_services": True},
        "logging": {"level": "INFO"},
    }


def load_config(config_path: Optional[str]) -> dict:
    """Load configuration from YAML file, merged over the defaults."""
    config = default_config()
    if not config_path:
        return config

    path = Path(config_path)
    if not path.exists():
        logger.warning("Config file not found, using defaults", path=config_path)
        return config

    with open(path, "r") as f:
        loaded = yaml.safe_load(f) or {}

    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values

    logger.info("Configuration loaded", path=config_path)
    return config


def format_sample(sample: Sample) -> str:
    """One console line per sample; failed readings show as '-'."""
    parts = [sample.captured_at.astimezone().strftime("%H:%M:%S")]
    for reading in sample.readings:
        parts.append(f"{reading.path}={reading.value if reading.ok else '-'}")
    return "  ".join(parts)


class HostMonitor:
    """Host Monitor application."""

    def __init__(self, config: dict):
        self.config = config
        self.sink = ExportSink(config["export"].get("dir", "exports"))
        self._shutdown_event = asyncio.Event()
        self.session: Optional[Session] = None

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    async def monitor(self, interval: int, duration: int, export: Optional[str] = None,
                      export_every: int = 0) -> List[Sample]:
        """Run a sampling session until its deadline or a shutdown request."""
        # Build everything that can reject the configuration before the loop starts
        limits = SessionLimits.from_config(self.config)
        sampler = Sampler(build_sources(self.config))
        exporter = PeriodicExporter(self.sink, export_every) if export_every else None

        self.session = Session(
            sampler,
            limits=limits,
            on_sample=lambda s: print(format_sample(s), flush=True),
        )
        await self.session.start(interval, duration)

        waiters = []
        try:
            if exporter:
                await exporter.start()
            waiters = [
                asyncio.create_task(self.session.wait()),
                asyncio.create_task(self._shutdown_event.wait()),
            ]
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
            samples = await self.session.stop()
            if exporter:
                await exporter.stop()

        logger.info("Monitoring finished", samples=len(samples))
        if self.session.error:
            logger.error("Monitoring ended early", error=str(self.session.error))
        if export is not None:
            path = await asyncio.to_thread(self.sink.export, samples, export or None, "samples")
            print(f"Exported {len(samples)} samples to {path}")
        return samples

    async def snapshot(self, export: Optional[str] = None) -> dict:
        """Print (and optionally export) a full system snapshot."""
        snapshot_config = self.config.get("snapshot", {})
        data = await get_system_snapshot(
            top_processes=snapshot_config.get("top_processes", 10),
            include_services=snapshot_config.get("include_services", True),
        )
        if export is not None:
            path = await asyncio.to_thread(self.sink.export, data, export or None, "snapshot")
            print(f"Snapshot exported to {path}")
        else:
            print(json.dumps(data, indent=2, default=str))
        return data

    async def processes(self, top: int, sort_by: str) -> None:
        rows = await asyncio.to_thread(list_processes, top, sort_by)
        print(f"{'PID':>7}  {'CPU%':>6}  {'MEM MB':>9}  NAME")
        for row in rows:
            cpu = "-" if row["cpu_percent"] is None else f"{row['cpu_percent']:.1f}"
            mem = "-" if row["memory_mb"] is None else f"{row['memory_mb']:.1f}"
            print(f"{row['pid']:>7}  {cpu:>6}  {mem:>9}  {row['name']}")

    async def services(self) -> None:
        for service in await list_services():
            print(f"{service['status'] or '-':<12}  {service['name']}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Host telemetry monitor")
    parser.add_argument("--config", "-c", default=None, help="Path to configuration file")
    parser.add_argument("--pretty", action="store_true", help="Human-readable log output")

    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--monitor", "-m", action="store_true", help="Sample metrics for a fixed duration")
    mode.add_argument("--snapshot", "-s", action="store_true", help="Collect a full system snapshot")
    mode.add_argument("--processes", "-p", action="store_true", help="List top processes")
    mode.add_argument("--services", action="store_true", help="List system services")

    parser.add_argument("--interval", "-i", type=int, help="Seconds between samples")
    parser.add_argument("--duration", "-d", type=int, help="Total monitoring time in seconds")
    parser.add_argument("--export", "-e", nargs="?", const="", default=None, metavar="PATH",
                        help="Export results as JSON (optional file or directory)")
    parser.add_argument("--export-every", type=int, default=None, metavar="SECONDS",
                        help="Also export a full snapshot every N seconds while monitoring")
    parser.add_argument("--top", type=int, default=20, help="Number of processes to list")
    parser.add_argument("--sort", default="cpu_percent",
                        choices=["cpu_percent", "memory_mb", "pid", "name"], help="Process sort key")
    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = load_config(args.config)
    configure_logging(config.get("logging", {}).get("level", "INFO"), pretty=args.pretty)

    app = HostMonitor(config)

    def handle_signal(signum, frame):
        logger.info("Received signal", signal=signum)
        loop.call_soon_threadsafe(app.request_shutdown)

    loop = asyncio.get_running_loop()
    signal.signal(signal.SIGINT, handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, handle_signal)

    try:
        if args.monitor:
            session_config = config.get("session", {})
            export_every = args.export_every
            if export_every is None:
                export_every = config["export"].get("every", 0)
            await app.monitor(
                interval=args.interval if args.interval is not None else session_config.get("interval", 5),
                duration=args.duration if args.duration is not None else session_config.get("duration", 300),
                export=args.export,
                export_every=export_every,
            )
        elif args.snapshot:
            await app.snapshot(export=args.export)
        elif args.processes:
            await app.processes(args.top, args.sort)
        elif args.services:
            await app.services()
    except InvalidConfiguration as e:
        logger.error("Invalid configuration", error=str(e))
        return 2
    except ExportError as e:
        logger.error("Export failed", error=str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
