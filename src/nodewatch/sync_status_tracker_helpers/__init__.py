"""Building blocks of the sync-status tracker."""

from .signals import (
    NetworkStage,
    NodeStatus,
    SyncSignals,
    SyncStatusSnapshot,
    is_connected,
    is_synced,
    is_system_time_correct,
    sync_percentage,
)
from .stall_tracker import StallTracker
from .status_response import DiskSpaceStatus, NetworkStatusSnapshot, parse_disk_space, parse_network_status
from .timers import PeriodicTimer

__all__ = [
    "DiskSpaceStatus",
    "NetworkStage",
    "NetworkStatusSnapshot",
    "NodeStatus",
    "PeriodicTimer",
    "StallTracker",
    "SyncSignals",
    "SyncStatusSnapshot",
    "is_connected",
    "is_synced",
    "is_system_time_correct",
    "parse_disk_space",
    "parse_network_status",
    "sync_percentage",
]
