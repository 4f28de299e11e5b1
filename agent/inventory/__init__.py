"""
Host Monitor - Inventory Package

Ad-hoc system snapshots plus process and service listings.
"""

from .processes import list_processes
from .services import list_services
from .snapshot import get_system_snapshot

__all__ = ["get_system_snapshot", "list_processes", "list_services"]
