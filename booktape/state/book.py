"""Current order book snapshot per pair, plus a short history."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from ..core.types import OrderBookSnapshot, TradingPair


@dataclass
class BookState:
    """Holds the last good snapshot for one pair.

    ``push`` replaces the current snapshot in a single assignment; readers see
    either the old ladder or the new one, never a partially built one.
    """

    pair: TradingPair
    window: int = 20
    history: List[OrderBookSnapshot] = field(default_factory=list)

    def push(self, snap: OrderBookSnapshot):
        if snap.pair != self.pair:
            raise ValueError(f"snapshot for {snap.pair} pushed into {self.pair} state")
        self.history.append(snap)
        if len(self.history) > self.window:
            self.history.pop(0)

    def last(self) -> OrderBookSnapshot | None:
        return self.history[-1] if self.history else None
