"""Core type definitions for the book/tape engine.

Offers and trust-line changes are the ledger-native inputs; price levels,
snapshots and trades are derived. Everything here is immutable once built:
snapshots are replaced wholesale on every poll and trades never change after
decoding.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from .utils import currency_to_hex, hex_to_currency

XRP_CODE = "XRP"


class Side(str, Enum):
    ASK = "ASK"
    BID = "BID"


class Direction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class Asset:
    currency: str
    issuer: Optional[str] = None

    @property
    def is_xrp(self) -> bool:
        return self.issuer is None and self.currency.upper() == XRP_CODE

    @property
    def code(self) -> str:
        """Currency code as the ledger spells it (3-char or 40-hex)."""
        if self.is_xrp:
            return XRP_CODE
        return currency_to_hex(self.currency)

    @property
    def symbol(self) -> str:
        return hex_to_currency(self.currency)

    def matches(self, other: "Asset") -> bool:
        return self.code == other.code and self.issuer == other.issuer

    def to_request(self) -> dict:
        """Shape used in ``taker_gets`` / ``taker_pays`` request fields."""
        if self.is_xrp:
            return {"currency": XRP_CODE}
        return {"currency": self.code, "issuer": self.issuer}

    def __str__(self) -> str:
        if self.is_xrp:
            return XRP_CODE
        return f"{self.symbol}.{self.issuer}"


XRP = Asset(XRP_CODE)


@dataclass(frozen=True)
class AssetAmount:
    asset: Asset
    value: float


@dataclass(frozen=True)
class TradingPair:
    base: Asset
    quote: Asset = XRP

    @property
    def key(self) -> str:
        return f"{self.base}/{self.quote}"

    def leg(self, side: Side) -> Tuple[Asset, Asset]:
        """Return ``(taker_gets, taker_pays)`` for offers resting on ``side``.

        Asks are offers giving base for quote, so the taker gets base;
        bids are the inverse.
        """
        if side == Side.ASK:
            return self.base, self.quote
        return self.quote, self.base

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class Offer:
    account: str
    taker_gets: AssetAmount
    taker_pays: AssetAmount
    sequence: Optional[int] = None
    index: Optional[str] = None
    taker_gets_funded: Optional[AssetAmount] = None
    taker_pays_funded: Optional[AssetAmount] = None

    @property
    def gets(self) -> AssetAmount:
        return self.taker_gets_funded or self.taker_gets

    @property
    def pays(self) -> AssetAmount:
        return self.taker_pays_funded or self.taker_pays


@dataclass(frozen=True)
class PriceLevel:
    price: float
    amount: float  # base asset
    total: float  # quote asset
    cumulative_amount: float
    cumulative_quote: float
    average_price: float
    owner_account: Optional[str] = None


@dataclass(frozen=True)
class Spread:
    value: float
    percent: float


@dataclass(frozen=True)
class OrderBookSnapshot:
    pair: TradingPair
    asks: Tuple[PriceLevel, ...]
    bids: Tuple[PriceLevel, ...]
    spread: Optional[Spread]
    as_of: datetime

    def best_ask(self) -> Optional[PriceLevel]:
        return self.asks[0] if self.asks else None

    def best_bid(self) -> Optional[PriceLevel]:
        return self.bids[0] if self.bids else None

    def mid(self) -> Optional[float]:
        ask, bid = self.best_ask(), self.best_bid()
        if ask and bid:
            return (ask.price + bid.price) / 2
        if ask:
            return ask.price
        if bid:
            return bid.price
        return None

    def is_empty(self) -> bool:
        return not self.asks and not self.bids


@dataclass(frozen=True)
class TrustLineChange:
    """Balance movement on one RippleState entry.

    ``Balance`` on a trust line is expressed from the low account's side:
    positive means the high account owes the low account.
    """

    entry_kind: str  # ModifiedNode | CreatedNode | DeletedNode
    currency: str
    high_account: str
    low_account: str
    final_balance: float
    previous_balance: float


@dataclass(frozen=True)
class TxEffect:
    tx_hash: str
    result: str
    close_time: Optional[datetime]
    ledger_index: Optional[int] = None
    changes: Tuple[TrustLineChange, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.result == "tesSUCCESS"


def trade_id(tx_hash: str, counterparty: str) -> str:
    return hashlib.sha1(f"{tx_hash}:{counterparty}".encode()).hexdigest()


@dataclass(frozen=True)
class Trade:
    id: str
    direction: Direction
    price: Optional[float]
    base_amount: float
    quote_amount: Optional[float]
    counterparty: str
    ledger_close_time: Optional[datetime]
    tx_hash: str
    ledger_index: Optional[int] = None
    price_source: str = "none"  # book_ask | book_bid | hint | none

    @property
    def dedup_key(self) -> Tuple[str, str]:
        return self.tx_hash, self.counterparty


@dataclass
class CounterpartyVolume:
    counterparty: str
    trades: int = 0
    bought: float = 0.0
    sold: float = 0.0

    @property
    def volume(self) -> float:
        return self.bought + self.sold
