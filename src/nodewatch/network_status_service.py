"""
Network status service.

Composition root that wires the lifecycle state machine, the sync-status
tracker and the disk-space guard to their control channels, and offers the
handful of operations the rest of the application uses: ``setup``,
``teardown``, ``restart_node``, ``get_epochs_data`` and read-only signals.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, fields
from typing import Any, Callable, Optional

from .async_helpers import safely_schedule_coroutine
from .channels import ControlChannel, InMemoryChannel
from .disk_space_guard import DiskSpaceGuard
from .monitor_config import NodeMonitorConfig
from .node_api_client import NodeApiClient
from .node_state_machine import CHANNEL_REQUEST_ERRORS, NodeStateMachine
from .sync_status_tracker import NetworkStatusClient, SyncStatusTracker
from .sync_status_tracker_helpers import NodeStatus, SyncStatusSnapshot

logger = logging.getLogger(__name__)


@dataclass
class MonitorChannels:
    """Every control channel the service consumes or publishes on."""

    lifecycle_state: ControlChannel
    credentials: ControlChannel
    status: ControlChannel
    restart: ControlChannel
    system_start_time: ControlChannel
    epochs_consolidated: ControlChannel
    disk_space: ControlChannel

    @classmethod
    def in_memory(cls, prefix: str = "node") -> "MonitorChannels":
        return cls(**{f.name: InMemoryChannel(f"{prefix}.{f.name}") for f in fields(cls)})


def current_epoch(system_start_time: float, now: float, epoch_length_seconds: float) -> int:
    """Epoch number at *now* for a chain that started at *system_start_time* (seconds)."""
    if system_start_time <= 0 or now < system_start_time:
        return 0
    return int(math.floor((now - system_start_time) / epoch_length_seconds))


class NetworkStatusService:
    """Keeps the node's connectivity/sync signals current for the application."""

    def __init__(
        self,
        channels: MonitorChannels,
        config: Optional[NodeMonitorConfig] = None,
        *,
        client: Optional[NetworkStatusClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config if config is not None else NodeMonitorConfig()
        self.channels = channels
        self._clock = clock
        self.client = client if client is not None else NodeApiClient(request_timeout_seconds=self.config.request_timeout_seconds)
        self.tracker = SyncStatusTracker(self.client, self.config, clock=clock)
        self.state_machine = NodeStateMachine(self.tracker, channels.credentials)
        self.disk_space_guard = DiskSpaceGuard(self.tracker, channels.disk_space)

        self.system_start_time: float = 0
        self.epochs_consolidated: int = 0
        self.current_epoch: int = 0
        self._last_pushed_status: Optional[NodeStatus] = None

    # --------------------------------------------------------------- signals

    @property
    def is_connected(self) -> bool:
        return self.tracker.is_connected

    @property
    def is_synced(self) -> bool:
        return self.tracker.is_synced

    @property
    def sync_percentage(self) -> float:
        return self.tracker.sync_percentage

    @property
    def is_node_stopping(self) -> bool:
        return self.state_machine.is_node_stopping

    @property
    def is_node_stopped(self) -> bool:
        return self.state_machine.is_node_stopped

    @property
    def is_not_enough_disk_space(self) -> bool:
        return self.disk_space_guard.is_not_enough_disk_space

    # ------------------------------------------------------------- lifecycle

    async def setup(self) -> None:
        await self.state_machine.request_state(self.channels.lifecycle_state)
        await self._request_cached_status()
        self.state_machine.attach(self.channels.lifecycle_state)

        if self.config.is_development:
            await self._get_system_start_time()

        self.tracker.add_listener(self._on_status_changed)
        self.tracker.start()

        self.disk_space_guard.attach()
        await self.disk_space_guard.check_disk_space()

    async def teardown(self) -> None:
        self.tracker.stop()
        self.tracker.remove_listener(self._on_status_changed)
        self.state_machine.detach()
        self.disk_space_guard.detach()
        await self.tracker.wait_idle()
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()

    async def restart_node(self) -> None:
        try:
            logger.info("Requesting a restart of the node")
            await self.channels.restart.send(None)
        except CHANNEL_REQUEST_ERRORS:  # policy_guard: allow-silent-handler
            logger.exception("Restart of the node failed")

    async def get_epochs_data(self) -> None:
        try:
            consolidated = await self.channels.epochs_consolidated.send(None)
        except CHANNEL_REQUEST_ERRORS:  # policy_guard: allow-silent-handler
            logger.exception("Error while requesting consolidated epochs")
            return
        self.epochs_consolidated = int(consolidated or 0)
        self.current_epoch = current_epoch(self.system_start_time, self._clock(), self.config.epoch_length_seconds)

    # -------------------------------------------------------------- internals

    async def _request_cached_status(self) -> None:
        try:
            logger.info("Requesting node status")
            payload = await self.channels.status.send(None)
        except CHANNEL_REQUEST_ERRORS:  # policy_guard: allow-silent-handler
            logger.exception("Error while requesting node status")
            return
        logger.info("Received cached node status %s", payload)
        if payload:
            NodeStatus.from_wire(payload).apply_to(self.tracker.signals)

    async def _get_system_start_time(self) -> None:
        try:
            start_time = await self.channels.system_start_time.send(None)
        except CHANNEL_REQUEST_ERRORS:  # policy_guard: allow-silent-handler
            logger.exception("Error while requesting system start time")
            return
        self.system_start_time = float(start_time or 0)

    def _on_status_changed(self, snapshot: SyncStatusSnapshot) -> None:
        if not snapshot.is_connected:
            return
        status = NodeStatus.from_signals(self.tracker.signals)
        if status == self._last_pushed_status:
            return
        self._last_pushed_status = status
        safely_schedule_coroutine(lambda: self._push_status(status))

    async def _push_status(self, status: NodeStatus) -> Any:
        try:
            logger.info("Updating node status")
            return await self.channels.status.send(status.to_wire())
        except CHANNEL_REQUEST_ERRORS:  # policy_guard: allow-silent-handler
            logger.exception("Error while updating node status")
            return None


__all__ = ["MonitorChannels", "NetworkStatusService", "current_epoch"]
