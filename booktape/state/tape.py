"""Bounded, deduplicated, newest-first trade tape."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from ..core.types import CounterpartyVolume, Direction, Trade

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(trade: Trade) -> Tuple[datetime, int]:
    return trade.ledger_close_time or _EPOCH, trade.ledger_index or 0


class TapeView:
    """Read-only, live view of the tape restricted to one counterparty."""

    def __init__(self, tape: "TradeTape", counterparty: str):
        self._tape = tape
        self.counterparty = counterparty

    def __iter__(self) -> Iterator[Trade]:
        return (t for t in self._tape if t.counterparty == self.counterparty)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def to_list(self) -> List[Trade]:
        return list(self)


class TradeTape:
    """Trades ordered newest first, capped at ``capacity``.

    Duplicates, keyed by ``(tx_hash, counterparty)``, are ignored. A trade older
    than everything on a full tape falls straight off the end.
    """

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._trades: List[Trade] = []
        self._keys: Set[Tuple[str, str]] = set()

    def __len__(self) -> int:
        return len(self._trades)

    def __iter__(self) -> Iterator[Trade]:
        return iter(tuple(self._trades))

    def __contains__(self, trade: object) -> bool:
        return isinstance(trade, Trade) and trade.dedup_key in self._keys

    def insert(self, trade: Trade) -> bool:
        """Store ``trade``; return False when it was a duplicate or evicted at once."""
        if trade.dedup_key in self._keys:
            return False
        key = _sort_key(trade)
        pos = 0
        # Usually the newest trade: the loop exits on the first comparison.
        while pos < len(self._trades) and _sort_key(self._trades[pos]) > key:
            pos += 1
        self._trades.insert(pos, trade)
        self._keys.add(trade.dedup_key)
        stored = True
        while len(self._trades) > self.capacity:
            dropped = self._trades.pop()
            self._keys.discard(dropped.dedup_key)
            if dropped is trade:
                stored = False
        return stored

    def insert_many(self, trades: Iterable[Trade]) -> List[Trade]:
        """Insert oldest first; return the trades that were stored, newest first."""
        added = [t for t in sorted(trades, key=_sort_key) if self.insert(t)]
        return [t for t in reversed(added) if t in self]

    def filter_by(self, counterparty: str) -> TapeView:
        return TapeView(self, counterparty)

    def latest(self) -> Optional[Trade]:
        return self._trades[0] if self._trades else None

    def top_counterparties(self, n: int = 10) -> List[CounterpartyVolume]:
        """Counterparties ranked by base volume on the tape."""
        stats: Dict[str, CounterpartyVolume] = {}
        for t in self._trades:
            entry = stats.setdefault(t.counterparty, CounterpartyVolume(t.counterparty))
            entry.trades += 1
            if t.direction == Direction.BUY:
                entry.bought += t.base_amount
            else:
                entry.sold += t.base_amount
        return sorted(stats.values(), key=lambda s: s.volume, reverse=True)[:n]
