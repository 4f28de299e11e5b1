"""
Host Monitor - Process Listing

Lists running processes with CPU and memory usage.
"""

import time
from typing import Dict, List

import psutil
import structlog

logger = structlog.get_logger(__name__)

SORT_KEYS = ("cpu_percent", "memory_mb", "pid", "name")


def list_processes(limit: int = 20, sort_by: str = "cpu_percent", cpu_window: float = 0.2) -> List[Dict]:
    """Return the top processes ordered by the given key.

    CPU percentages need two readings, so every process is primed first and
    read again after cpu_window seconds.
    """
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {sort_by}")

    procs = []
    for proc in psutil.process_iter(["pid", "name", "username", "status"]):
        try:
            proc.cpu_percent(interval=None)
            procs.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    if cpu_window > 0:
        time.sleep(cpu_window)

    rows = []
    for proc in procs:
        try:
            with proc.oneshot():
                rows.append({
                    "pid": proc.info["pid"],
                    "name": proc.info["name"] or "",
                    "user": proc.info.get("username"),
                    "status": proc.info.get("status"),
                    "cpu_percent": proc.cpu_percent(interval=None),
                    "memory_mb": round(proc.memory_info().rss / (1024 * 1024), 2),
                })
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            continue
        except psutil.AccessDenied:
            rows.append({
                "pid": proc.info["pid"],
                "name": proc.info["name"] or "",
                "user": proc.info.get("username"),
                "status": proc.info.get("status"),
                "cpu_percent": None,
                "memory_mb": None,
            })

    if sort_by in ("cpu_percent", "memory_mb"):
        # Highest first, unreadable processes last
        rows.sort(key=lambda r: -1 if r[sort_by] is None else r[sort_by], reverse=True)
    else:
        rows.sort(key=lambda r: r[sort_by])

    logger.debug("Processes listed", total=len(rows), limit=limit)
    return rows[:limit] if limit else rows
