"""Turn raw offers into sorted, filtered, cumulative price ladders."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from ..core.clock import utcnow
from ..core.types import (
    Offer,
    OrderBookSnapshot,
    PriceLevel,
    Side,
    Spread,
    TradingPair,
)
from ..core.utils import safe_div

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Entry:
    price: float
    base: float
    quote: float
    owner: str


class BookAggregator:
    """Builds an ``OrderBookSnapshot`` from the raw offers of both sides.

    Filters, in order:

    - offers with a non-positive base or quote amount (cancelled/unfunded);
    - dust: quote value below ``min_quote_value``;
    - bids only: base size above ``max_bid_base_amount`` (spam sizes that would
      otherwise swamp depth scaling).

    Levels are one per offer. Sorting is stable, so equal prices keep the
    order the node returned them in. Cumulative figures are computed only
    after sorting and truncation.
    """

    def __init__(
        self,
        min_quote_value: float = 0.01,
        max_bid_base_amount: float = 10_000_000.0,
        max_levels: Optional[int] = None,
    ):
        self.min_quote_value = min_quote_value
        self.max_bid_base_amount = max_bid_base_amount
        self.max_levels = max_levels

    def aggregate(
        self,
        raw_asks: Iterable[Offer],
        raw_bids: Iterable[Offer],
        pair: TradingPair,
        as_of: Optional[datetime] = None,
    ) -> OrderBookSnapshot:
        asks = self._ladder(self._entries(raw_asks, pair, Side.ASK), Side.ASK)
        bids = self._ladder(self._entries(raw_bids, pair, Side.BID), Side.BID)
        return OrderBookSnapshot(
            pair=pair,
            asks=asks,
            bids=bids,
            spread=compute_spread(asks, bids),
            as_of=as_of or utcnow(),
        )

    def filter_offers(self, offers: Iterable[Offer], pair: TradingPair, side: Side) -> List[Offer]:
        """Offers that survive the noise filters, in input order."""
        return [o for o in offers if self._entry(o, pair, side) is not None]

    def _entries(self, offers: Iterable[Offer], pair: TradingPair, side: Side) -> List[_Entry]:
        entries = (self._entry(o, pair, side) for o in offers)
        return [e for e in entries if e is not None]

    def _entry(self, offer: Offer, pair: TradingPair, side: Side) -> Optional[_Entry]:
        gets_asset, pays_asset = pair.leg(side)
        gets, pays = offer.gets, offer.pays
        if not (gets.asset.matches(gets_asset) and pays.asset.matches(pays_asset)):
            logger.debug("Offer from %s does not belong to %s %s", offer.account, pair, side.value)
            return None
        if side == Side.ASK:
            base, quote = gets.value, pays.value
        else:
            base, quote = pays.value, gets.value
        if base <= 0 or quote <= 0:
            return None
        if quote < self.min_quote_value:
            return None
        if side == Side.BID and base > self.max_bid_base_amount:
            return None
        return _Entry(price=quote / base, base=base, quote=quote, owner=offer.account)

    def _ladder(self, entries: List[_Entry], side: Side) -> Tuple[PriceLevel, ...]:
        ordered = sorted(entries, key=lambda e: e.price, reverse=side == Side.BID)
        if self.max_levels is not None:
            ordered = ordered[: self.max_levels]
        levels: List[PriceLevel] = []
        cum_base = 0.0
        cum_quote = 0.0
        for e in ordered:
            cum_base += e.base
            cum_quote += e.quote
            levels.append(
                PriceLevel(
                    price=e.price,
                    amount=e.base,
                    total=e.quote,
                    cumulative_amount=cum_base,
                    cumulative_quote=cum_quote,
                    average_price=safe_div(cum_quote, cum_base, 0.0),
                    owner_account=e.owner,
                )
            )
        return tuple(levels)


def compute_spread(
    asks: Tuple[PriceLevel, ...], bids: Tuple[PriceLevel, ...]
) -> Optional[Spread]:
    """Best ask minus best bid; None when either side is empty.

    A crossed book yields a negative value, which is passed through as-is.
    """
    if not asks or not bids:
        return None
    value = asks[0].price - bids[0].price
    return Spread(value=value, percent=safe_div(value, asks[0].price, 0.0) * 100)
