"""Suspend status polling while the node lacks disk space."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .channels import ControlChannel, Unsubscribe
from .node_state_machine import CHANNEL_REQUEST_ERRORS
from .sync_status_tracker import SyncStatusTracker
from .sync_status_tracker_helpers import DiskSpaceStatus, parse_disk_space

logger = logging.getLogger(__name__)


class DiskSpaceGuard:
    """
    Tracks the host's disk-space verdict and toggles the tracker's timers.

    Insufficient space cancels both timers, sufficient space recreates them;
    both directions are idempotent so repeated verdicts never leak or
    duplicate timers.
    """

    def __init__(self, tracker: SyncStatusTracker, channel: ControlChannel) -> None:
        self._tracker = tracker
        self._channel = channel
        self.status = DiskSpaceStatus()
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def is_not_enough_disk_space(self) -> bool:
        return self.status.insufficient

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._channel.on_receive(self.on_disk_space_status)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def check_disk_space(self, disk_space_required: Optional[int] = None) -> None:
        """Ask the host for a fresh verdict; an immediate answer is applied like a push."""
        try:
            response = await self._channel.send(disk_space_required)
        except CHANNEL_REQUEST_ERRORS:  # policy_guard: allow-silent-handler
            logger.exception("Error while requesting disk space status")
            return
        if response is not None:
            self.on_disk_space_status(response)

    def on_disk_space_status(self, payload: Any) -> None:
        status = parse_disk_space(payload)
        self.status = status

        if status.insufficient:
            if self._tracker.cancel_timers():
                logger.warning(
                    "Not enough disk space (missing %s, required %s); status polling suspended",
                    status.missing,
                    status.required,
                )
        elif self._tracker.start_timers():
            logger.info("Disk space sufficient; status polling resumed")


__all__ = ["DiskSpaceGuard"]
