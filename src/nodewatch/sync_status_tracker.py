"""
Sync Status Tracker

Polls the node for its network status and turns the answers into the
connectivity / sync signals the rest of the application gates on.

Two timers drive the polling:

* the regular status poll, every ``poll_interval_seconds``;
* the forced time-difference check, every ``force_check_interval_seconds``,
  which asks the node to re-run its NTP check and only runs while connected.

Only one request is in flight at a time. A regular tick that finds any request
executing is skipped. A forced check that finds another forced check executing
waits for it instead of issuing a duplicate; one that finds a regular poll
executing waits for it and then issues its own request.

Every poll applies its results in a single synchronous step after the request
returns, so listeners never observe a half-updated signal set.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional, Protocol

from .monitor_config import NodeMonitorConfig
from .network_errors import POLL_FAILURE_TYPES, is_network_unreachable_error
from .sync_status_tracker_helpers import (
    NetworkStage,
    NetworkStatusSnapshot,
    PeriodicTimer,
    StallTracker,
    SyncSignals,
    SyncStatusSnapshot,
    is_connected,
    is_synced,
    is_system_time_correct,
    parse_network_status,
    sync_percentage,
)

logger = logging.getLogger(__name__)

Listener = Callable[[SyncStatusSnapshot], None]


class NetworkStatusClient(Protocol):
    def set_request_config(self, credentials: Any) -> None: ...

    async def get_network_status(self, *, force_ntp_check: bool = False) -> Any: ...


class SyncStatusTracker:
    """Maintains SyncSignals for one node."""

    def __init__(
        self,
        client: NetworkStatusClient,
        config: Optional[NodeMonitorConfig] = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config if config is not None else NodeMonitorConfig()
        self.signals = SyncSignals()
        self._client = client
        self._clock = clock
        self._credentials: Any = None
        self._stage = NetworkStage.CONNECTING
        self._start_time = clock()

        self._local_side = StallTracker(self.config.max_allowed_stall_seconds)
        self._network_side = StallTracker(self.config.max_allowed_stall_seconds)

        self._in_flight: Optional[asyncio.Task] = None
        self._in_flight_forced = False
        self._background: set[asyncio.Task] = set()

        self._listeners: List[Listener] = []
        self._synced_callbacks: List[Callable[[], Any]] = []

        self._poll_timer = PeriodicTimer("network status", self.config.poll_interval_seconds, self.update_network_status)
        self._force_check_timer = PeriodicTimer(
            "forced time difference", self.config.force_check_interval_seconds, self.force_check_local_time_difference
        )
        self._grace_period_handle: Optional[asyncio.TimerHandle] = None

    # ------------------------------------------------------------------ derived

    @property
    def is_connected(self) -> bool:
        return is_connected(self.signals)

    @property
    def is_system_time_correct(self) -> bool:
        return is_system_time_correct(self.signals)

    @property
    def is_synced(self) -> bool:
        return is_synced(self.signals)

    @property
    def sync_percentage(self) -> float:
        return sync_percentage(self.signals.local_block_height, self.signals.network_block_height)

    @property
    def stage(self) -> NetworkStage:
        return self._stage

    @property
    def credentials(self) -> Any:
        return self._credentials

    @property
    def timers_active(self) -> bool:
        return self._poll_timer.is_active or self._force_check_timer.is_active

    def snapshot(self) -> SyncStatusSnapshot:
        return SyncStatusSnapshot.capture(self.signals)

    # --------------------------------------------------------------- listeners

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def on_synced_and_ready(self, callback: Callable[[], Any]) -> None:
        self._synced_callbacks.append(callback)

    # --------------------------------------------------------------- lifecycle

    def start(self) -> None:
        """Start both timers and ignore time drift for the warm-up window."""
        self._start_time = self._clock()
        self.start_timers()
        self.ignore_system_time_checks(True)
        loop = asyncio.get_running_loop()
        self._grace_period_handle = loop.call_later(
            self.config.time_checks_grace_period_seconds, self.ignore_system_time_checks, False
        )

    def stop(self) -> None:
        self.cancel_timers()
        if self._grace_period_handle is not None:
            self._grace_period_handle.cancel()
            self._grace_period_handle = None

    def start_timers(self) -> bool:
        """Create whichever timers are not running; True if any was started."""
        started_poll = self._poll_timer.start()
        started_force = self._force_check_timer.start()
        return started_poll or started_force

    def cancel_timers(self) -> bool:
        """Cancel whichever timers are running; True if any was cancelled."""
        cancelled_poll = self._poll_timer.cancel()
        cancelled_force = self._force_check_timer.cancel()
        return cancelled_poll or cancelled_force

    def ignore_system_time_checks(self, flag: bool = True) -> None:
        self.signals.is_system_time_ignored = flag
        self._notify()

    # ------------------------------------------------------------- credentials

    def set_credentials(self, credentials: Any) -> bool:
        """Adopt *credentials* unless they equal the current ones; True if adopted."""
        if credentials is None or credentials == self._credentials:
            return False
        self._client.set_request_config(credentials)
        self._credentials = credentials
        logger.info("Adopted new node connection credentials")
        return True

    def clear_credentials(self) -> None:
        self._credentials = None

    # ----------------------------------------------------------------- polling

    async def force_check_local_time_difference(self) -> None:
        if self.is_connected:
            await self.update_network_status(force_ntp_check=True)

    async def update_network_status(self, force_ntp_check: bool = False) -> None:
        """Run one poll, honouring the single-request-in-flight rule."""
        if self._credentials is None:
            return

        while self._in_flight is not None and not self._in_flight.done():
            if not force_ntp_check:
                return
            pending = self._in_flight
            pending_forced = self._in_flight_forced
            await asyncio.wait({pending})
            if pending_forced:
                return
            if self._credentials is None:
                return

        task = asyncio.get_running_loop().create_task(self._poll(force_ntp_check))
        self._in_flight = task
        self._in_flight_forced = force_ntp_check
        await task

    async def _poll(self, force_ntp_check: bool) -> None:
        if force_ntp_check:
            # Keep the forced request's own latency from counting as a stall
            deadline = self._clock() + self.config.request_timeout_seconds
            self._local_side.push_deadline(deadline)
            self._network_side.push_deadline(deadline)

        was_connected = self.is_connected
        try:
            payload = await asyncio.wait_for(
                self._client.get_network_status(force_ntp_check=force_ntp_check),
                timeout=self.config.request_timeout_seconds,
            )
            status = parse_network_status(payload)
        except POLL_FAILURE_TYPES as exc:  # policy_guard: allow-silent-handler
            if is_network_unreachable_error(exc):
                logger.debug("Node is not reachable: %s", exc)
            else:
                logger.warning("Node returned an unusable network status: %s", exc)
            self.set_disconnected(was_connected)
            return

        if self._credentials is None:
            logger.debug("Ignoring network status result during node shutdown sequence")
            self.set_disconnected(self.is_connected)
            return

        self._apply_status(status, was_connected)
        self._notify(was_connected)

    def _apply_status(self, status: NetworkStatusSnapshot, was_connected: bool) -> None:
        signals = self.signals
        now = self._clock()

        signals.is_node_responding = True
        signals.is_node_subscribed = status.is_subscribed

        signals.local_time_difference = status.local_time_difference
        signals.is_node_time_correct = (
            status.local_time_difference is not None
            and status.local_time_difference <= self.config.allowed_time_difference_us
        )

        if self._stage is NetworkStage.CONNECTING and signals.is_node_subscribed:
            self._stage = NetworkStage.SYNCING
            logger.info("========== Connected after %d milliseconds ==========", self._startup_delta_ms())

        signals.sync_progress = status.sync_progress

        local_height = status.local_blockchain_height
        network_height = status.blockchain_height
        if signals.initial_local_height is None:
            signals.initial_local_height = local_height
            logger.debug("Initial local block height: %s", local_height)

        has_started_receiving_blocks = network_height > 0
        clock_untrusted = not signals.is_node_time_correct and not signals.is_system_time_ignored
        local_syncing = self._local_side.observe(local_height, now, clock_untrusted=clock_untrusted)
        network_syncing = self._network_side.observe(
            network_height, now, can_increase=has_started_receiving_blocks, clock_untrusted=clock_untrusted
        )
        signals.local_block_height = local_height
        signals.network_block_height = network_height
        logger.debug("Local blockchain height: %s", local_height)

        signals.is_node_syncing = has_started_receiving_blocks and (local_syncing or network_syncing)
        remaining_unsynced_blocks = network_height - local_height
        signals.is_node_in_sync = signals.is_node_syncing and remaining_unsynced_blocks <= self.config.allowed_unsynced_blocks

        if has_started_receiving_blocks:
            initial = signals.initial_local_height or 0
            logger.debug("Network blockchain height: %s", network_height)
            logger.debug("Total unsynced blocks at node start: %s", network_height - initial)
            logger.debug("Blocks synced since node start: %s", local_height - initial)

        if self._stage is NetworkStage.SYNCING and signals.is_node_in_sync:
            self._stage = NetworkStage.RUNNING
            logger.info("========== Synced after %d milliseconds ==========", self._startup_delta_ms())
            self._fire_synced_and_ready()

        if was_connected != self.is_connected:
            if not self.is_connected:
                signals.has_been_connected = True
                logger.debug("Connection Lost. Reconnecting...")
            elif signals.has_been_connected:
                logger.debug("Connection Restored")

    def set_disconnected(self, was_connected: bool) -> None:
        """Reset connectivity signals; remember that a connection existed."""
        self.signals.reset_connectivity()
        if was_connected:
            self.signals.has_been_connected = True
            logger.debug("Connection Lost. Reconnecting...")
        self._notify(was_connected)

    # --------------------------------------------------------------- internals

    def _startup_delta_ms(self) -> int:
        return int((self._clock() - self._start_time) * 1000)

    def _fire_synced_and_ready(self) -> None:
        for callback in list(self._synced_callbacks):
            try:
                callback()
            except Exception:  # policy_guard: allow-silent-handler
                logger.exception("Synced-and-ready callback failed")

    def _notify(self, was_connected: Optional[bool] = None) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # policy_guard: allow-silent-handler
                logger.exception("Sync status listener failed")

        if was_connected is None or was_connected == snapshot.is_connected:
            return
        if snapshot.is_connected:
            logger.info("Connected, forcing NTP check now...")
            self._schedule(lambda: self.update_network_status(force_ntp_check=True))
        else:
            self._schedule(self.update_network_status)

    def _schedule(self, factory: Callable[[], Awaitable[None]]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(factory())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_idle(self) -> None:
        """Wait until reaction-triggered polls and the in-flight request have settled."""
        while True:
            pending = set(self._background)
            if self._in_flight is not None and not self._in_flight.done():
                pending.add(self._in_flight)
            if not pending:
                return
            await asyncio.wait(pending)


__all__ = ["NetworkStatusClient", "SyncStatusTracker"]
