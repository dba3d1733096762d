"""Parsing of node and host responses consumed by the tracker and disk guard."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ..errors import NodeRequestError


@dataclass(frozen=True)
class NetworkStatusSnapshot:
    subscription_status: Dict[str, str] = field(default_factory=dict)
    sync_progress: float = 0.0
    blockchain_height: int = 0
    local_blockchain_height: int = 0
    local_time_difference: Optional[int] = None

    @property
    def is_subscribed(self) -> bool:
        return "subscribed" in self.subscription_status.values()


@dataclass(frozen=True)
class DiskSpaceStatus:
    insufficient: bool = False
    required: str = ""
    missing: str = ""
    recommended: str = ""


def _require_mapping(payload: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise NodeRequestError(f"{what} must be an object, got {type(payload).__name__}")
    return payload


def parse_network_status(payload: Any) -> NetworkStatusSnapshot:
    """
    Convert a ``NetworkStatusResponse`` payload into a snapshot.

    Raises:
        NodeRequestError: If the payload is not an object
        KeyError / ValueError / TypeError: If a height field is missing or not numeric
    """
    data = _require_mapping(payload, "Network status response")
    subscription = data.get("subscriptionStatus") or {}
    if not isinstance(subscription, Mapping):
        raise NodeRequestError("subscriptionStatus must be an object")

    time_difference = data.get("localTimeDifference")
    sync_progress = data.get("syncProgress")

    return NetworkStatusSnapshot(
        subscription_status={str(peer): str(state) for peer, state in subscription.items()},
        sync_progress=float(sync_progress) if sync_progress is not None else 0.0,
        blockchain_height=int(data["blockchainHeight"]),
        local_blockchain_height=int(data["localBlockchainHeight"]),
        local_time_difference=int(time_difference) if time_difference is not None else None,
    )


def parse_disk_space(payload: Any) -> DiskSpaceStatus:
    """Convert a ``DiskSpaceResponse`` payload into a status."""
    data = _require_mapping(payload, "Disk space response")
    return DiskSpaceStatus(
        insufficient=bool(data.get("isNotEnoughDiskSpace", False)),
        required=str(data.get("diskSpaceRequired", "")),
        missing=str(data.get("diskSpaceMissing", "")),
        recommended=str(data.get("diskSpaceRecommended", "")),
    )


__all__ = ["DiskSpaceStatus", "NetworkStatusSnapshot", "parse_disk_space", "parse_network_status"]
