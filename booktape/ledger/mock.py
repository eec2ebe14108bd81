"""In-memory ledger transports for tests and dry runs.

``MockNetwork`` maps endpoint URLs to request handlers and hands out
``MockTransport`` sessions, so failover and reconnect paths can be exercised
without sockets. ``SyntheticLedger`` fabricates a random-walk book and a
trickle of trust-line transactions for ``--dry-run``.
"""

from __future__ import annotations

import asyncio
import inspect
import random
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from .base import Transport, unwrap_result
from ..core.clock import datetime_to_ripple_time, utcnow
from ..core.errors import LedgerConnectionError
from ..core.types import TradingPair
from ..core.utils import DROPS_PER_XRP

Message = Dict[str, Any]
Handler = Callable[[Message], Union[Message, Awaitable[Message]]]


def ok(result: Dict[str, Any]) -> Message:
    return {"status": "success", "type": "response", "result": result}


def error(code: str, message: Optional[str] = None) -> Message:
    return {"status": "error", "type": "response", "error": code, "error_message": message}


class MockTransport(Transport):
    def __init__(self, url: str, handler: Handler, reachable: bool = True):
        super().__init__(url)
        self.handler = handler
        self.reachable = reachable
        self.requests: List[Message] = []
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def connect(self) -> None:
        if not self.reachable:
            raise LedgerConnectionError(f"{self.url}: unreachable")
        self._open = True

    async def request(self, payload: Message) -> Dict[str, Any]:
        if not self._open:
            raise LedgerConnectionError(f"{self.url}: not connected")
        self.requests.append(payload)
        message = self.handler(payload)
        if inspect.isawaitable(message):
            message = await message
        if not self._open:
            raise LedgerConnectionError(f"{self.url}: connection lost")
        return unwrap_result(message)

    async def close(self) -> None:
        self._open = False

    def drop(self) -> None:
        """Simulate the node hanging up."""
        self._open = False


class MockNetwork:
    """Endpoint URL -> handler, with switchable reachability."""

    def __init__(self, handlers: Dict[str, Handler], down: Iterable[str] = ()):
        self.handlers = handlers
        self.down = set(down)
        self.transports: List[MockTransport] = []

    def factory(self, url: str) -> MockTransport:
        transport = MockTransport(url, self.handlers[url], reachable=url not in self.down)
        self.transports.append(transport)
        return transport

    def connected_urls(self) -> List[str]:
        return [t.url for t in self.transports if t.is_open]

    def requests(self, command: Optional[str] = None) -> List[Message]:
        out = [r for t in self.transports for r in t.requests]
        if command is not None:
            out = [r for r in out if r.get("command") == command]
        return out


class SyntheticLedger:
    """Fabricated ledger answering ``book_offers``, ``account_tx``, ``server_info``.

    The book is a random walk around ``mid`` in quote units per base unit;
    every ``account_tx`` call appends one new transaction moving a random
    holder's trust-line balance.
    """

    def __init__(
        self,
        pair: TradingPair,
        mid: float = 0.5,
        depth: int = 10,
        holders: int = 5,
        seed: Optional[int] = None,
        latency_s: float = 0.0,
    ):
        self.pair = pair
        self.mid = mid
        self.depth = depth
        self.latency_s = latency_s
        self._rng = random.Random(seed)
        self._holders = [f"rSynthHolder{i:02d}" for i in range(holders)]
        self._balances = {h: 1000.0 for h in self._holders}
        self._txs: List[Message] = []
        self._seq = 0

    async def __call__(self, payload: Message) -> Message:
        if self.latency_s:
            await asyncio.sleep(self.latency_s)
        command = payload.get("command")
        if command == "server_info":
            return ok({"info": {"build_version": "synthetic"}})
        if command == "book_offers":
            return ok(self._book_offers(payload))
        if command == "account_tx":
            return ok(self._account_tx(payload))
        return error("unknownCmd", f"synthetic ledger does not support {command}")

    def _amount(self, asset_req: Dict[str, Any], value: float) -> Any:
        if asset_req.get("currency") == "XRP":
            return str(int(value * DROPS_PER_XRP))
        return {"currency": asset_req["currency"], "issuer": asset_req["issuer"], "value": f"{value:.6f}"}

    def _book_offers(self, payload: Message) -> Dict[str, Any]:
        self.mid = max(1e-6, self.mid * (1 + self._rng.uniform(-0.005, 0.005)))
        gets, pays = payload["taker_gets"], payload["taker_pays"]
        is_ask = gets.get("currency") == self.pair.base.code
        offers = []
        for i in range(self.depth):
            base = round(self._rng.uniform(10, 500), 2)
            step = 1 + 0.01 * (i + 1)
            price = self.mid * step if is_ask else self.mid / step
            quote = base * price
            owner = self._rng.choice(self._holders)
            if is_ask:
                offers.append({"Account": owner, "TakerGets": self._amount(gets, base), "TakerPays": self._amount(pays, quote), "Sequence": i + 1})
            else:
                offers.append({"Account": owner, "TakerGets": self._amount(gets, quote), "TakerPays": self._amount(pays, base), "Sequence": i + 1})
        return {"offers": offers}

    def _account_tx(self, payload: Message) -> Dict[str, Any]:
        if self.pair.base.issuer is None:
            return {"account": payload.get("account"), "transactions": []}
        self._seq += 1
        holder = self._rng.choice(self._holders)
        before = self._balances[holder]
        after = max(0.0, before + self._rng.uniform(-50, 50))
        self._balances[holder] = after
        self._txs.insert(
            0,
            {
                "tx": {
                    "hash": f"{self._seq:064X}",
                    "date": datetime_to_ripple_time(utcnow()),
                    "ledger_index": 90_000_000 + self._seq,
                },
                "meta": {
                    "TransactionResult": "tesSUCCESS",
                    "AffectedNodes": [
                        {
                            "ModifiedNode": {
                                "LedgerEntryType": "RippleState",
                                "FinalFields": {
                                    "Balance": {"currency": self.pair.base.code, "issuer": "rrrrrrrrrrrrrrrrrrrrBZbvji", "value": f"{after:.6f}"},
                                    "HighLimit": {"currency": self.pair.base.code, "issuer": self.pair.base.issuer, "value": "0"},
                                    "LowLimit": {"currency": self.pair.base.code, "issuer": holder, "value": "1000000"},
                                },
                                "PreviousFields": {
                                    "Balance": {"currency": self.pair.base.code, "issuer": "rrrrrrrrrrrrrrrrrrrrBZbvji", "value": f"{before:.6f}"},
                                },
                            }
                        }
                    ],
                },
                "validated": True,
            },
        )
        limit = int(payload.get("limit") or 20)
        return {"account": payload.get("account"), "transactions": self._txs[:limit]}
