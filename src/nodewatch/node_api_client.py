"""
Node API client.

Issues the network-status request against the node's HTTPS API using the
connection credentials the host hands out once the node is running.
"""

from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

import aiohttp

from .async_helpers import safely_schedule_coroutine
from .errors import NodeRequestError

logger = logging.getLogger(__name__)

NODE_INFO_PATH = "/api/v1/node-info"
SUPPORTED_SCHEMES = ("http", "https")


def _session_open(session: Optional[aiohttp.ClientSession]) -> bool:
    return session is not None and not session.closed


@dataclass(frozen=True)
class ConnectionCredentials:
    """Where the node listens and the TLS material needed to talk to it."""

    hostname: str
    port: int
    ca_file: Optional[str] = None
    cert_file: Optional[str] = None
    key_file: Optional[str] = None
    scheme: str = "https"

    @classmethod
    def from_wire(cls, payload: Any) -> "ConnectionCredentials":
        if isinstance(payload, ConnectionCredentials):
            return payload
        if not isinstance(payload, Mapping):
            raise TypeError(f"Connection credentials must be an object, got {type(payload).__name__}")
        return cls(
            hostname=str(payload["hostname"]),
            port=int(payload["port"]),
            ca_file=payload.get("caFile"),
            cert_file=payload.get("certFile"),
            key_file=payload.get("keyFile"),
            scheme=str(payload.get("scheme", "https")),
        )

    @property
    def base_url(self) -> str:
        if self.scheme not in SUPPORTED_SCHEMES:
            raise ValueError(f"Unsupported node API scheme {self.scheme!r}")
        return f"{self.scheme}://{self.hostname}:{self.port}"

    def ssl_context(self) -> Optional[ssl.SSLContext]:
        if self.scheme != "https":
            return None
        context = ssl.create_default_context(cafile=self.ca_file)
        if self.cert_file:
            context.load_cert_chain(self.cert_file, self.key_file)
        return context


def _quantity(value: Any) -> Any:
    """Unwrap ``{"quantity": n, "unit": ...}`` values the node API uses for numbers."""
    if isinstance(value, Mapping) and "quantity" in value:
        return value["quantity"]
    return value


def normalize_node_info(body: Any) -> Dict[str, Any]:
    """Flatten a node-info body into the ``NetworkStatusResponse`` shape."""
    if not isinstance(body, Mapping):
        raise NodeRequestError(f"Node info response must be an object, got {type(body).__name__}")
    data = body.get("data", body)
    if not isinstance(data, Mapping):
        raise NodeRequestError("Node info response has no data object")
    return {
        "subscriptionStatus": data.get("subscriptionStatus") or {},
        "syncProgress": _quantity(data.get("syncProgress")),
        "blockchainHeight": _quantity(data.get("blockchainHeight")) or 0,
        "localBlockchainHeight": _quantity(data.get("localBlockchainHeight")) or 0,
        "localTimeDifference": _quantity(data.get("localTimeDifference")),
    }


class NodeApiClient:
    """aiohttp-backed implementation of the tracker's status client."""

    def __init__(
        self,
        *,
        request_timeout_seconds: float = 30.0,
        session_factory: Callable[..., aiohttp.ClientSession] = aiohttp.ClientSession,
    ) -> None:
        self.request_timeout_seconds = request_timeout_seconds
        self._session_factory = session_factory
        self._credentials: Optional[ConnectionCredentials] = None
        self._ssl_context: Optional[ssl.SSLContext] = None
        self.session: Optional[aiohttp.ClientSession] = None

    @property
    def credentials(self) -> Optional[ConnectionCredentials]:
        return self._credentials

    def set_request_config(self, credentials: Optional[ConnectionCredentials]) -> None:
        """Adopt new credentials; the open session is dropped so TLS material is reloaded."""
        self._credentials = credentials
        self._ssl_context = credentials.ssl_context() if credentials is not None else None
        stale = self.session
        self.session = None
        if _session_open(stale):
            safely_schedule_coroutine(stale.close)

    async def get_network_status(self, *, force_ntp_check: bool = False) -> Dict[str, Any]:
        if self._credentials is None:
            raise NodeRequestError("Node API request attempted without connection credentials")

        session = self._ensure_session()
        url = f"{self._credentials.base_url}{NODE_INFO_PATH}"
        params = {"force_ntp_check": "true"} if force_ntp_check else None
        timeout = aiohttp.ClientTimeout(total=self.request_timeout_seconds)

        async with session.get(url, params=params, ssl=self._ssl_context, timeout=timeout) as response:
            if response.status != 200:
                raise NodeRequestError(f"Node info request failed with HTTP {response.status}", status=response.status)
            body = await response.json()

        return normalize_node_info(body)

    async def close(self) -> None:
        if _session_open(self.session):
            await self.session.close()
        self.session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if not _session_open(self.session):
            self.session = self._session_factory()
        return self.session


__all__ = ["ConnectionCredentials", "NODE_INFO_PATH", "NodeApiClient", "normalize_node_info"]
