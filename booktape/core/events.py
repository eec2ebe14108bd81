"""Events handed to collaborators (UI, candle builders) after each refresh."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Union

from .types import OrderBookSnapshot, Trade, TradingPair


@dataclass
class BookUpdated:
    pair: TradingPair
    book: OrderBookSnapshot
    ts: float  # seconds since epoch


@dataclass
class TradesAppended:
    pair: TradingPair
    trades: List[Trade]  # newly stored, newest first
    ts: float


EngineEvent = Union[BookUpdated, TradesAppended]
Listener = Callable[[EngineEvent], None]
