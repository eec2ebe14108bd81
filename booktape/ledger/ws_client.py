"""WebSocket transport for the ledger JSON API.

One socket per transport. Requests are tagged with an ``id``; a single reader
task routes each response back to the waiting caller, so the book and tape
refreshes of a pair can share the session without serialising on it.

When the socket drops, every pending request fails with
``LedgerConnectionError`` and the transport reports ``is_open == False``;
reconnecting is the client's job.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from typing import Any, Dict, Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI
from websockets.protocol import State

from .base import Transport, unwrap_result
from ..core.errors import LedgerConnectionError

logger = logging.getLogger(__name__)


class WebSocketTransport(Transport):
    _ws: Optional[ClientConnection]

    def __init__(self, url: str, open_timeout: float = 10.0, max_size: int = 2**24):
        super().__init__(url)
        self.open_timeout = open_timeout
        self.max_size = max_size
        self._ws = None
        self._reader: Optional[asyncio.Task] = None
        self._pending: Dict[int, asyncio.Future] = {}
        self._ids = itertools.count(1)

    @property
    def is_open(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    async def connect(self) -> None:
        try:
            self._ws = await connect(
                self.url, open_timeout=self.open_timeout, max_size=self.max_size
            )
        except (OSError, InvalidHandshake, InvalidURI, asyncio.TimeoutError) as e:
            raise LedgerConnectionError(f"{self.url}: {e}") from e
        self._reader = asyncio.create_task(self._read_loop())

    async def request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.is_open:
            raise LedgerConnectionError(f"{self.url}: not connected")
        req_id = next(self._ids)
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[req_id] = fut
        try:
            await self._ws.send(json.dumps({**payload, "id": req_id}))
            message = await fut
        except ConnectionClosed as e:
            raise LedgerConnectionError(f"{self.url}: {e}") from e
        finally:
            self._pending.pop(req_id, None)
        return unwrap_result(message)

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            finally:
                if self._reader is not None:
                    self._reader.cancel()
                self._fail_pending(LedgerConnectionError(f"{self.url}: closed"))

    async def _read_loop(self) -> None:
        ws = self._ws
        try:
            async for raw in ws:
                if isinstance(raw, bytes):
                    raw = raw.decode("utf-8", errors="ignore")
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    logger.debug("Ignoring non-JSON frame from %s", self.url)
                    continue
                if not isinstance(msg, dict):
                    continue
                # Subscription streams carry no id; only responses are routed.
                fut = self._pending.get(msg.get("id"))
                if fut is not None and not fut.done():
                    fut.set_result(msg)
        except ConnectionClosed as e:
            logger.info("Ledger socket %s closed: %s", self.url, e)
        finally:
            self._fail_pending(LedgerConnectionError(f"{self.url}: connection lost"))

    def _fail_pending(self, exc: Exception) -> None:
        for fut in self._pending.values():
            if not fut.done():
                fut.set_exception(exc)
