"""
Network error detection and classification.

Poll requests against the node fail in one of two ways: the transport could
not reach the node, or the node answered with something unusable. Both
degrade the sync signals to disconnected; anything outside these types is a
programming error and propagates.
"""

import asyncio
import socket

import aiohttp

from .errors import NodeRequestError

NETWORK_ERROR_TYPES = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    socket.gaierror,
    OSError,
)

RESPONSE_ERROR_TYPES = (
    NodeRequestError,
    KeyError,
    TypeError,
    ValueError,
)

POLL_FAILURE_TYPES = NETWORK_ERROR_TYPES + RESPONSE_ERROR_TYPES


def is_network_unreachable_error(exception: BaseException) -> bool:
    """Return True if *exception* means the node could not be reached at all."""
    if isinstance(exception, NETWORK_ERROR_TYPES):
        return True

    os_error = getattr(exception, "os_error", None)
    return isinstance(os_error, OSError)


__all__ = [
    "NETWORK_ERROR_TYPES",
    "POLL_FAILURE_TYPES",
    "RESPONSE_ERROR_TYPES",
    "is_network_unreachable_error",
]
