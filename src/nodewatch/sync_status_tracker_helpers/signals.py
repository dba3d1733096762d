"""Sync signal state and the signals derived from it."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class NetworkStage(Enum):
    """Internal startup milestones: first subscription, then first in-sync."""

    CONNECTING = 0
    SYNCING = 1
    RUNNING = 2


@dataclass
class SyncSignals:
    """Mutable signal state; written only by the tracker and the state machine."""

    is_node_responding: bool = False
    is_node_subscribed: bool = False
    is_node_syncing: bool = False
    is_node_in_sync: bool = False
    # Optimistic until the node first reports its time difference
    is_node_time_correct: bool = True
    has_been_connected: bool = False
    is_system_time_ignored: bool = False
    sync_progress: Optional[float] = None
    local_time_difference: Optional[int] = 0
    initial_local_height: Optional[int] = None
    local_block_height: int = 0
    network_block_height: int = 0

    def reset_connectivity(self) -> None:
        self.is_node_responding = False
        self.is_node_subscribed = False
        self.is_node_syncing = False
        self.is_node_in_sync = False


def is_connected(signals: SyncSignals) -> bool:
    return signals.is_node_responding and signals.is_node_subscribed and signals.is_node_syncing


def is_system_time_correct(signals: SyncSignals) -> bool:
    return signals.is_node_time_correct or signals.is_system_time_ignored


def is_synced(signals: SyncSignals) -> bool:
    return is_connected(signals) and signals.is_node_in_sync and is_system_time_correct(signals)


def sync_percentage(local_height: int, network_height: int) -> float:
    """Share of the network chain held locally, clamped to [0, 100]."""
    if network_height >= 1:
        if local_height >= network_height:
            return 100.0
        return max(0.0, local_height / network_height * 100)
    return 0.0


@dataclass(frozen=True)
class NodeStatus:
    """The connectivity subset shared with the host (cached status / status push)."""

    is_node_responding: bool = False
    is_node_subscribed: bool = False
    is_node_syncing: bool = False
    is_node_in_sync: bool = False
    has_been_connected: bool = False

    _WIRE_NAMES = {
        "is_node_responding": "isNodeResponding",
        "is_node_subscribed": "isNodeSubscribed",
        "is_node_syncing": "isNodeSyncing",
        "is_node_in_sync": "isNodeInSync",
        "has_been_connected": "hasBeenConnected",
    }

    @classmethod
    def from_signals(cls, signals: SyncSignals) -> "NodeStatus":
        return cls(
            is_node_responding=signals.is_node_responding,
            is_node_subscribed=signals.is_node_subscribed,
            is_node_syncing=signals.is_node_syncing,
            is_node_in_sync=signals.is_node_in_sync,
            has_been_connected=signals.has_been_connected,
        )

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "NodeStatus":
        values = {attr: bool(payload[wire]) for attr, wire in cls._WIRE_NAMES.items() if wire in payload}
        return cls(**values)

    def to_wire(self) -> Dict[str, bool]:
        return {wire: getattr(self, attr) for attr, wire in self._WIRE_NAMES.items()}

    def apply_to(self, signals: SyncSignals) -> None:
        for attr in self._WIRE_NAMES:
            setattr(signals, attr, getattr(self, attr))


@dataclass(frozen=True)
class SyncStatusSnapshot:
    """Immutable view handed to listeners after each atomic update."""

    is_node_responding: bool
    is_node_subscribed: bool
    is_node_syncing: bool
    is_node_in_sync: bool
    is_node_time_correct: bool
    has_been_connected: bool
    is_connected: bool
    is_system_time_correct: bool
    is_synced: bool
    sync_percentage: float
    sync_progress: Optional[float]
    local_block_height: int
    network_block_height: int
    local_time_difference: Optional[int]

    @classmethod
    def capture(cls, signals: SyncSignals) -> "SyncStatusSnapshot":
        return cls(
            is_node_responding=signals.is_node_responding,
            is_node_subscribed=signals.is_node_subscribed,
            is_node_syncing=signals.is_node_syncing,
            is_node_in_sync=signals.is_node_in_sync,
            is_node_time_correct=signals.is_node_time_correct,
            has_been_connected=signals.has_been_connected,
            is_connected=is_connected(signals),
            is_system_time_correct=is_system_time_correct(signals),
            is_synced=is_synced(signals),
            sync_percentage=sync_percentage(signals.local_block_height, signals.network_block_height),
            sync_progress=signals.sync_progress,
            local_block_height=signals.local_block_height,
            network_block_height=signals.network_block_height,
            local_time_difference=signals.local_time_difference,
        )

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    "NetworkStage",
    "NodeStatus",
    "SyncSignals",
    "SyncStatusSnapshot",
    "is_connected",
    "is_synced",
    "is_system_time_correct",
    "sync_percentage",
]
