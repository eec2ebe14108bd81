"""Error taxonomy for ledger access and decoding."""

from __future__ import annotations


class BookTapeError(Exception):
    """Base class for all engine errors."""


class LedgerConnectionError(BookTapeError, ConnectionError):
    """No reachable endpoint, or the session dropped mid-request."""


class LedgerTimeoutError(BookTapeError, TimeoutError):
    """An RPC call exceeded its deadline."""


class RequestRejectedError(BookTapeError):
    """The node answered, but with an error status (e.g. ``actNotFound``)."""

    def __init__(self, error: str, message: str | None = None):
        self.error = error
        self.message = message
        super().__init__(f"{error}: {message}" if message else error)


class MalformedDataError(BookTapeError, ValueError):
    """A ledger response is missing expected fields or has the wrong shape."""



class EmptyResultError(BookTapeError):
    """A valid but empty book or tape.

    The engine itself never raises this; empty ladders and tapes are normal
    states. It exists for callers that want to turn emptiness into control flow.
    """
