"""Expose ProcessSupervisor start/stop/switch over control channels."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .channels import HostChannel, InMemoryChannel
from .process_supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


@dataclass
class SupervisorChannels:
    start: HostChannel
    stop: HostChannel
    switch_to: HostChannel
    started: HostChannel
    stopped: HostChannel

    @classmethod
    def create(cls, prefix: str = "node") -> "SupervisorChannels":
        """Build in-memory channels named ``<prefix>.<channel>``."""
        return cls(
            start=InMemoryChannel(f"{prefix}.start"),
            stop=InMemoryChannel(f"{prefix}.stop"),
            switch_to=InMemoryChannel(f"{prefix}.switchTo"),
            started=InMemoryChannel(f"{prefix}.started"),
            stopped=InMemoryChannel(f"{prefix}.stopped"),
        )


def _network_from(payload: Any) -> Optional[str]:
    if payload is None or payload == "":
        return None
    return str(payload)


def register_supervisor_api(supervisor: ProcessSupervisor, channels: SupervisorChannels) -> None:
    """
    Install responders that drive *supervisor* from channel requests.

    Each request is acknowledged by broadcasting on ``started`` (with the
    network id) or ``stopped``. An unsupported network raises back to the
    requester and nothing is broadcast.
    """

    async def _on_start(payload: Any) -> Optional[str]:
        network = _network_from(payload)
        supervisor.start(network)
        await channels.started.broadcast(network)
        return network

    async def _on_stop(_payload: Any) -> None:
        supervisor.stop()
        await channels.stopped.broadcast(None)

    async def _on_switch(payload: Any) -> Optional[str]:
        network = _network_from(payload)
        logger.info("Switching node to network %s", network)
        await supervisor.switch_to(network)
        await channels.started.broadcast(network)
        return network

    channels.start.handle(_on_start)
    channels.stop.handle(_on_stop)
    channels.switch_to.handle(_on_switch)


__all__ = ["SupervisorChannels", "register_supervisor_api"]
