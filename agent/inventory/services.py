"""
Host Monitor - Service Listing

Enumerates system services: Windows services through psutil, systemd units
through systemctl.
"""

import asyncio
import shutil
import sys
from typing import Dict, List

import psutil
import structlog

logger = structlog.get_logger(__name__)


async def list_services() -> List[Dict]:
    """List services on this host, or an empty list if unsupported."""
    if sys.platform == "win32":
        return await asyncio.to_thread(_list_windows_services)
    if shutil.which("systemctl"):
        return await _list_systemd_services()

    logger.info("Service listing not supported on this platform", platform=sys.platform)
    return []


def _list_windows_services() -> List[Dict]:
    services = []
    for service in psutil.win_service_iter():
        try:
            info = service.as_dict()
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logger.debug("Skipping service", name=service.name(), error=str(e))
            continue
        services.append({
            "name": info["name"],
            "display_name": info.get("display_name"),
            "status": info.get("status"),
            "start_type": info.get("start_type"),
            "pid": info.get("pid"),
        })
    return services


async def _run_command(cmd: List[str]) -> Dict:
    """Run a command asynchronously."""
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
        stdout, stderr = await process.communicate()

        return {
            "returncode": process.returncode,
            "stdout": stdout.decode("utf-8", errors="replace"),
            "stderr": stderr.decode("utf-8", errors="replace"),
        }
    except OSError as e:
        return {
            "returncode": -1,
            "stdout": "",
            "stderr": str(e),
        }


async def _list_systemd_services() -> List[Dict]:
    result = await _run_command([
        "systemctl", "list-units",
        "--type=service",
        "--all",
        "--no-pager",
        "--no-legend",
        "--plain"
    ])

    if result["returncode"] != 0:
        logger.error("Failed to list services", stderr=result["stderr"])
        return []

    return parse_systemctl_units(result["stdout"])


def parse_systemctl_units(output: str) -> List[Dict]:
    """Parse `systemctl list-units --plain --no-legend` output."""
    services = []
    for line in output.strip().split("\n"):
        parts = line.split(None, 4)
        if len(parts) < 4:
            continue

        unit_name, load_state, active_state, sub_state = parts[:4]
        if not unit_name.endswith(".service"):
            continue

        services.append({
            "name": unit_name[:-len(".service")],
            "display_name": parts[4].strip() if len(parts) > 4 else None,
            "status": sub_state,
            "active_state": active_state,
            "load_state": load_state,
        })
    return services
