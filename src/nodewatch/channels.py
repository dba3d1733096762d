"""
Control-channel contract between the node host process and its consumers.

A channel offers two capabilities:

* request/response: ``await channel.send(payload)`` returns the answer produced
  by whoever registered a responder on the other end;
* publish/subscribe: ``channel.on_receive(handler)`` registers a passive
  listener for payloads pushed with ``broadcast``.

Consumers only need :class:`ControlChannel`. The host side, which answers
requests and pushes broadcasts, is typed as :class:`HostChannel`.

The transport is not prescribed; :class:`InMemoryChannel` wires both ends
inside one event loop and is what the composition root uses when the host and
its consumers share a process.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Union

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Union[Any, Awaitable[Any]]]
Unsubscribe = Callable[[], None]


class ChannelError(RuntimeError):
    """Raised when a channel request cannot be answered."""


class ControlChannel(Protocol):
    name: str

    async def send(self, payload: Any = None) -> Any: ...

    def on_receive(self, handler: Handler) -> Unsubscribe: ...


class HostChannel(ControlChannel, Protocol):
    """The answering end of a channel: installs the responder and pushes broadcasts."""

    def handle(self, responder: Optional[Handler]) -> None: ...

    async def broadcast(self, payload: Any = None) -> None: ...


async def _invoke(handler: Handler, payload: Any) -> Any:
    result = handler(payload)
    if inspect.isawaitable(result):
        return await result
    return result


class InMemoryChannel:
    """Single-process channel; one responder answers requests, any number of listeners get pushes."""

    def __init__(self, name: str, responder: Optional[Handler] = None) -> None:
        self.name = name
        self._responder = responder
        self._listeners: List[Handler] = []

    def handle(self, responder: Optional[Handler]) -> None:
        """Install (or remove with ``None``) the request responder."""
        self._responder = responder

    async def send(self, payload: Any = None) -> Any:
        if self._responder is None:
            raise ChannelError(f"No responder registered on channel {self.name!r}")
        return await _invoke(self._responder, payload)

    async def request(self) -> Any:
        """Request with no payload; reads better for state fetches."""
        return await self.send(None)

    def on_receive(self, handler: Handler) -> Unsubscribe:
        self._listeners.append(handler)

        def _unsubscribe() -> None:
            if handler in self._listeners:
                self._listeners.remove(handler)

        return _unsubscribe

    async def broadcast(self, payload: Any = None) -> None:
        """Push *payload* to every listener; a failing listener does not stop the others."""
        for handler in list(self._listeners):
            try:
                await _invoke(handler, payload)
            except asyncio.CancelledError:
                raise
            except Exception:  # policy_guard: allow-silent-handler
                logger.exception("Listener on channel %s failed", self.name)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


__all__ = ["ChannelError", "ControlChannel", "Handler", "HostChannel", "InMemoryChannel", "Unsubscribe"]
