"""Node lifecycle state machine driving credential adoption and disconnects."""

from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any, Callable, List, Optional, Union

from .channels import ChannelError, ControlChannel, Unsubscribe
from .node_api_client import ConnectionCredentials
from .node_state import NODE_STOPPED_STATES, NODE_STOPPING_STATES, NodeLifecycleState, coerce_state
from .sync_status_tracker import SyncStatusTracker

logger = logging.getLogger(__name__)

CHANNEL_REQUEST_ERRORS = (
    ChannelError,
    ConnectionError,
    OSError,
    asyncio.TimeoutError,
)

CREDENTIAL_PAYLOAD_ERRORS = (
    KeyError,
    TypeError,
    ValueError,
    ssl.SSLError,
    OSError,
)

State = Union[NodeLifecycleState, str]
StateListener = Callable[[State], None]


class NodeStateMachine:
    """
    Consumes lifecycle-state notifications about the node.

    ========================  ==========================================
    incoming state            side effect
    ========================  ==========================================
    starting                  none
    running                   request and adopt connection credentials
    stopping/exiting/updating clear credentials, mark disconnected
    anything else             mark disconnected
    ========================  ==========================================
    """

    def __init__(
        self,
        tracker: SyncStatusTracker,
        credentials_channel: ControlChannel,
        *,
        credentials_parser: Callable[[Any], Any] = ConnectionCredentials.from_wire,
    ) -> None:
        self._tracker = tracker
        self._credentials_channel = credentials_channel
        self._parse_credentials = credentials_parser
        self.state: Optional[State] = None
        self.is_node_stopping = False
        self.is_node_stopped = False
        self._generation = 0
        self._listeners: List[StateListener] = []
        self._subscriptions: List[Unsubscribe] = []

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def attach(self, lifecycle_channel: ControlChannel) -> None:
        """Passively follow state and credential broadcasts (e.g. after a node restart)."""
        self._subscriptions.append(lifecycle_channel.on_receive(self.handle_state_change))
        self._subscriptions.append(self._credentials_channel.on_receive(self.update_credentials))

    def detach(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

    async def request_state(self, lifecycle_channel: ControlChannel) -> None:
        """Fetch the current state once and handle it."""
        logger.info("Requesting node state")
        try:
            state = await lifecycle_channel.send(None)
        except CHANNEL_REQUEST_ERRORS:  # policy_guard: allow-silent-handler
            logger.exception("Error while requesting node state")
            return
        logger.info("Handling node state <%s>", state)
        await self.handle_state_change(state)

    async def handle_state_change(self, raw_state: Any) -> None:
        state = coerce_state(raw_state)
        if state is None or state == self.state:
            return
        logger.info("Handling node state <%s>", getattr(state, "value", state))

        was_connected = self._tracker.is_connected
        self._generation += 1
        generation = self._generation
        self.state = state
        self.is_node_stopping = state in NODE_STOPPING_STATES
        self.is_node_stopped = state in NODE_STOPPED_STATES

        if state is NodeLifecycleState.STARTING:
            pass
        elif state is NodeLifecycleState.RUNNING:
            await self.request_credentials()
        elif state in NODE_STOPPING_STATES:
            self._tracker.clear_credentials()
            self._tracker.set_disconnected(was_connected)
        else:
            self._tracker.set_disconnected(was_connected)

        if generation != self._generation:
            return
        for listener in list(self._listeners):
            listener(state)

    async def request_credentials(self) -> None:
        """Request credentials; a reply that arrives after a newer state change is dropped."""
        generation = self._generation
        logger.info("Requesting connection credentials from the node host")
        try:
            payload = await self._credentials_channel.send(None)
        except CHANNEL_REQUEST_ERRORS:  # policy_guard: allow-silent-handler
            logger.exception("Error while requesting connection credentials")
            return
        if generation != self._generation:
            logger.info("Node state changed to <%s> while credentials were requested, ignoring them", self.state)
            return
        self.update_credentials(payload)

    def update_credentials(self, payload: Any) -> bool:
        """Adopt pushed or requested credentials; None and unchanged values are ignored."""
        if payload is None:
            return False
        try:
            credentials = self._parse_credentials(payload)
            return self._tracker.set_credentials(credentials)
        except CREDENTIAL_PAYLOAD_ERRORS:  # policy_guard: allow-silent-handler
            logger.exception("Received unusable connection credentials")
            return False


__all__ = ["CHANNEL_REQUEST_ERRORS", "NodeStateMachine"]
