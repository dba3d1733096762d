"""Common error types used across the node supervision code."""

from __future__ import annotations

from typing import Iterable


class UnsupportedNetworkError(ValueError):
    """Raised when the node is asked to start on a network it does not support."""

    def __init__(self, network_id: str, supported: Iterable[str]) -> None:
        self.network_id = network_id
        self.supported = tuple(supported)
        super().__init__(f"Unsupported network {network_id}. Supported networks are {', '.join(self.supported)}")


class NodeRequestError(RuntimeError):
    """Raised when the node answers a status request with an error or malformed payload."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


__all__ = ["NodeRequestError", "UnsupportedNetworkError"]
