"""
Host Monitor - System Snapshot

Point-in-time view of the whole host: identity, CPU, memory, disks, network
interfaces, top processes and services. Each section is gathered on its own
so a failing probe only blanks its section.
"""

import asyncio
import platform
import socket
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List

import psutil
import structlog

from .processes import list_processes
from .services import list_services

logger = structlog.get_logger(__name__)

MB = 1024 * 1024
GB = 1024 ** 3


async def get_system_snapshot(top_processes: int = 10, include_services: bool = True) -> Dict[str, Any]:
    """Collect every snapshot section."""
    sections: Dict[str, Callable[[], Awaitable[Any]]] = {
        "host": lambda: asyncio.to_thread(_host_info),
        "cpu": lambda: asyncio.to_thread(_cpu_info),
        "memory": lambda: asyncio.to_thread(_memory_info),
        "disks": lambda: asyncio.to_thread(_disk_info),
        "network": lambda: asyncio.to_thread(_network_info),
        "processes": lambda: asyncio.to_thread(list_processes, top_processes),
    }
    if include_services:
        sections["services"] = list_services

    snapshot: Dict[str, Any] = {"timestamp": datetime.now(timezone.utc).isoformat()}
    for name, collect in sections.items():
        try:
            snapshot[name] = await collect()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Snapshot section failed", section=name, error=str(e))
            snapshot[name] = {"error": str(e)}

    return snapshot


def _host_info() -> Dict[str, Any]:
    boot = datetime.fromtimestamp(psutil.boot_time(), tz=timezone.utc)
    return {
        "hostname": platform.node(),
        "platform": platform.platform(),
        "python_version": platform.python_version(),
        "boot_time": boot.isoformat(),
        "uptime_seconds": int((datetime.now(timezone.utc) - boot).total_seconds()),
    }


def _cpu_info() -> Dict[str, Any]:
    per_cpu = psutil.cpu_percent(interval=0.1, percpu=True)
    info: Dict[str, Any] = {
        "model": platform.processor() or None,
        "physical_cores": psutil.cpu_count(logical=False),
        "logical_cores": psutil.cpu_count(),
        "total_percent": round(sum(per_cpu) / len(per_cpu), 2) if per_cpu else None,
        "per_cpu_percent": per_cpu,
    }
    freq = psutil.cpu_freq()
    if freq:
        info["frequency_mhz"] = round(freq.current, 1)
    try:
        info["load_average"] = list(psutil.getloadavg())
    except (AttributeError, OSError):
        pass
    return info


def _memory_info() -> Dict[str, Any]:
    mem = psutil.virtual_memory()
    swap = psutil.swap_memory()
    return {
        "total_mb": round(mem.total / MB, 2),
        "available_mb": round(mem.available / MB, 2),
        "used_mb": round(mem.used / MB, 2),
        "used_percent": mem.percent,
        "swap_total_mb": round(swap.total / MB, 2),
        "swap_used_percent": swap.percent,
    }


def _disk_info() -> List[Dict[str, Any]]:
    disks = []
    for partition in psutil.disk_partitions():
        try:
            usage = psutil.disk_usage(partition.mountpoint)
        except (PermissionError, OSError):
            continue
        disks.append({
            "device": partition.device,
            "mountpoint": partition.mountpoint,
            "fstype": partition.fstype,
            "total_gb": round(usage.total / GB, 2),
            "used_gb": round(usage.used / GB, 2),
            "free_gb": round(usage.free / GB, 2),
            "used_percent": usage.percent,
        })
    return disks


def _network_info() -> List[Dict[str, Any]]:
    stats = psutil.net_if_stats()
    counters = psutil.net_io_counters(pernic=True)
    interfaces = []
    for iface, addrs in psutil.net_if_addrs().items():
        iface_stats = stats.get(iface)
        io = counters.get(iface)
        interfaces.append({
            "name": iface,
            "is_up": iface_stats.isup if iface_stats else None,
            "speed_mbps": iface_stats.speed if iface_stats else None,
            "addresses": [a.address for a in addrs if a.family in (socket.AF_INET, socket.AF_INET6)],
            "bytes_recv": io.bytes_recv if io else None,
            "bytes_sent": io.bytes_sent if io else None,
        })
    return interfaces
