"""Transport abstraction for the ledger JSON API."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict

from ..core.errors import MalformedDataError, RequestRejectedError


class Transport(ABC):
    """One session with one ledger endpoint.

    ``request`` takes a command payload (``{"command": ..., **params}``) and
    returns the ``result`` object of a successful response. Implementations
    raise ``LedgerConnectionError`` when the session is gone and
    ``RequestRejectedError`` when the node reports an error status. Deadlines
    are enforced by the caller.
    """

    url: str

    def __init__(self, url: str):
        self.url = url

    @abstractmethod
    async def connect(self) -> None: ...

    @abstractmethod
    async def request(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    async def close(self) -> None: ...

    @property
    @abstractmethod
    def is_open(self) -> bool: ...


def unwrap_result(message: Dict[str, Any]) -> Dict[str, Any]:
    """Return the ``result`` of a response or raise on an error status.

    WebSocket responses carry ``status`` next to ``result``; JSON-RPC over HTTP
    puts it inside ``result``.
    """
    if not isinstance(message, dict):
        raise MalformedDataError(f"response is not an object: {message!r}")
    result = message.get("result")
    status = message.get("status")
    if status is None and isinstance(result, dict):
        status = result.get("status")
    if status == "error":
        source = result if isinstance(result, dict) and "error" in result else message
        raise RequestRejectedError(
            str(source.get("error")), source.get("error_message")
        )
    if not isinstance(result, dict):
        raise MalformedDataError("response has no result object")
    return result
