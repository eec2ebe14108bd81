"""JSON-RPC over HTTP transport.

Public nodes also answer plain HTTPS POSTs (e.g. ``https://s1.ripple.com:51234``).
``requests`` is blocking, so each call runs in a worker thread to keep the
event loop free. There is no persistent socket: ``connect`` issues a
``server_info`` probe as the handshake.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import requests  # type: ignore

from .base import Transport, unwrap_result
from ..core.errors import LedgerConnectionError, MalformedDataError


class HttpTransport(Transport):
    def __init__(self, url: str, timeout: float = 8.0):
        super().__init__(url)
        self.timeout = timeout
        self._session: Optional[requests.Session] = None

    @property
    def is_open(self) -> bool:
        return self._session is not None

    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "Content-Type": "application/json"}

    async def connect(self) -> None:
        self._session = requests.Session()
        try:
            await self.request({"command": "server_info"})
        except LedgerConnectionError:
            await self.close()
            raise

    async def request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self._session is None:
            raise LedgerConnectionError(f"{self.url}: not connected")
        params = {k: v for k, v in payload.items() if k != "command"}
        body = {"method": payload["command"], "params": [params]}
        message = await asyncio.to_thread(self._post, body)
        return unwrap_result(message)

    def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        session = self._session
        if session is None:
            raise LedgerConnectionError(f"{self.url}: not connected")
        try:
            resp = session.post(
                self.url, json=body, headers=self._headers(), timeout=self.timeout
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise LedgerConnectionError(f"{self.url}: {e}") from e
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedDataError(f"{self.url}: response is not JSON") from e

    async def close(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            session.close()
