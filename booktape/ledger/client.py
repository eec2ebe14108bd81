"""Ledger client adapter: endpoint failover over one transport at a time.

Callers only see ``request``. Endpoint choice, reconnects and deadlines are
handled here, as a small state machine::

    DISCONNECTED -> CONNECTING -> CONNECTED -> DEGRADED -> RECONNECTING -> CONNECTED

A request that times out or loses its session moves the client to DEGRADED;
it then reconnects starting from the next candidate endpoint and retries the
request once. A second failure is surfaced to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence

from .base import Transport
from .http_client import HttpTransport
from .ws_client import WebSocketTransport
from ..core.errors import BookTapeError, LedgerConnectionError, LedgerTimeoutError
from ..io import metrics

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str], Transport]


class ConnectionState(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    DEGRADED = "DEGRADED"
    RECONNECTING = "RECONNECTING"


def transport_for(url: str) -> Transport:
    """Pick a transport by URL scheme."""
    scheme = url.split(":", 1)[0].lower()
    if scheme in ("ws", "wss"):
        return WebSocketTransport(url)
    if scheme in ("http", "https"):
        return HttpTransport(url)
    raise ValueError(f"unsupported ledger endpoint scheme: {url}")


class LedgerClient:
    def __init__(
        self,
        endpoints: Sequence[str],
        timeout: float = 8.0,
        transport_factory: TransportFactory = transport_for,
        label: str = "",
    ):
        if not endpoints:
            raise ValueError("at least one endpoint is required")
        self.endpoints: List[str] = list(endpoints)
        self.timeout = timeout
        self.transport_factory = transport_factory
        self.label = label
        self.state = ConnectionState.DISCONNECTED
        self._transport: Optional[Transport] = None
        self._index = 0
        self._lock = asyncio.Lock()

    @property
    def endpoint(self) -> Optional[str]:
        return self._transport.url if self._transport is not None else None

    @property
    def is_connected(self) -> bool:
        return self._transport is not None and self._transport.is_open

    async def connect(self) -> str:
        """Connect to the first endpoint that completes a handshake."""
        async with self._lock:
            if self.is_connected:
                return self._transport.url
            return await self._connect_from(self._index)

    async def _connect_from(self, start: int) -> str:
        self.state = (
            ConnectionState.RECONNECTING
            if self.state == ConnectionState.DEGRADED
            else ConnectionState.CONNECTING
        )
        errors = []
        n = len(self.endpoints)
        for offset in range(n):
            idx = (start + offset) % n
            url = self.endpoints[idx]
            transport = self.transport_factory(url)
            try:
                await asyncio.wait_for(transport.connect(), self.timeout)
            except (BookTapeError, asyncio.TimeoutError) as e:
                logger.warning("Ledger endpoint %s unreachable: %s", url, e)
                errors.append(f"{url}: {str(e) or type(e).__name__}")
                await transport.close()
                continue
            self._transport = transport
            self._index = idx
            self.state = ConnectionState.CONNECTED
            logger.info("Connected to ledger endpoint %s %s", url, self.label)
            return url
        self._transport = None
        self.state = ConnectionState.DISCONNECTED
        raise LedgerConnectionError(
            "no reachable ledger endpoint (" + "; ".join(errors) + ")"
        )

    async def _reconnect(self, failed: Transport) -> Transport:
        async with self._lock:
            # Another caller may already have replaced the failed session.
            if self._transport is not failed and self.is_connected:
                return self._transport
            self.state = ConnectionState.DEGRADED
            metrics.inc_failover(failed.url)
            await failed.close()
            await self._connect_from(self._index + 1)
            return self._transport

    async def _ensure_connected(self) -> Transport:
        if not self.is_connected:
            await self.connect()
        return self._transport

    async def _send(self, transport: Transport, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return await asyncio.wait_for(transport.request(payload), self.timeout)
        except asyncio.TimeoutError as e:
            raise LedgerTimeoutError(
                f"{payload.get('command')} timed out after {self.timeout}s on {transport.url}"
            ) from e

    async def request(self, command: str, **params: Any) -> Dict[str, Any]:
        """Send one command and return its ``result`` object.

        ``None``-valued params are dropped so optional fields such as
        ``marker`` can be passed through unconditionally.
        """
        payload = {"command": command}
        payload.update({k: v for k, v in params.items() if v is not None})
        transport = await self._ensure_connected()
        try:
            return await self._send(transport, payload)
        except (LedgerConnectionError, LedgerTimeoutError) as e:
            logger.warning(
                "%s failed on %s (%s); failing over", command, transport.url, e
            )
            transport = await self._reconnect(transport)
        return await self._send(transport, payload)

    async def paginate(
        self,
        command: str,
        items_key: str,
        page_cap: int,
        **params: Any,
    ) -> AsyncIterator[List[Any]]:
        """Yield pages of ``items_key`` following the server's ``marker``.

        Stops when the marker is absent, when it repeats, or after
        ``page_cap`` pages, whichever comes first.
        """
        marker = None
        seen = []
        for _ in range(max(1, page_cap)):
            result = await self.request(command, marker=marker, **params)
            items = result.get(items_key) or []
            yield items if isinstance(items, list) else []
            marker = result.get("marker")
            if marker is None or marker in seen:
                return
            seen.append(marker)

    async def close(self) -> None:
        async with self._lock:
            transport, self._transport = self._transport, None
            self.state = ConnectionState.DISCONNECTED
            if transport is not None:
                await transport.close()
