"""Infer trades from trust-line balance changes.

The ledger has no trade record for issued assets; what it does record is the
balance of every trust line a transaction touched. For a token ``CUR.issuer``
each holder keeps a trust line to the issuer, so a holder's balance going up
means they acquired the token (a buy from their side) and going down means
they disposed of it (a sell).

Prices are estimates. A fill price is never reconstructed from the offers a
transaction consumed; the decoder takes the best price of the most recent book
snapshot (ask for buys, bid for sells) and falls back to a caller-supplied
hint. ``Trade.price_source`` records which one was used.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from ..core.types import (
    Asset,
    Direction,
    OrderBookSnapshot,
    Trade,
    TrustLineChange,
    TxEffect,
    trade_id,
)
from ..core.utils import currencies_equal

logger = logging.getLogger(__name__)

DEFAULT_MATERIALITY = 1e-6


def holder_delta(change: TrustLineChange, issuer: str) -> Optional[Tuple[str, float]]:
    """Return ``(holder, delta)`` seen from the holder, or None.

    None when neither side of the line is ``issuer``, or when both are.
    """
    if change.high_account == issuer and change.low_account != issuer:
        # Balance is the low account's holding.
        return change.low_account, change.final_balance - change.previous_balance
    if change.low_account == issuer and change.high_account != issuer:
        return change.high_account, change.previous_balance - change.final_balance
    return None


def estimate_price(
    direction: Direction,
    book: Optional[OrderBookSnapshot],
    price_hint: Optional[float],
) -> Tuple[Optional[float], str]:
    if book is not None:
        ask, bid = book.best_ask(), book.best_bid()
        first, second = (ask, bid) if direction == Direction.BUY else (bid, ask)
        if first is not None:
            return first.price, "book_ask" if first is ask else "book_bid"
        if second is not None:
            return second.price, "book_ask" if second is ask else "book_bid"
    if price_hint is not None and price_hint > 0:
        return price_hint, "hint"
    return None, "none"


def decode_trades(
    effect: TxEffect,
    asset: Asset,
    price_hint: Optional[float] = None,
    book: Optional[OrderBookSnapshot] = None,
    materiality: float = DEFAULT_MATERIALITY,
) -> List[Trade]:
    """Decode the trades of one transaction for ``asset``.

    Deterministic for a given input: decoding the same effect twice yields
    trades with the same ids.
    """
    if not effect.succeeded:
        return []
    if asset.issuer is None:
        return []
    trades: List[Trade] = []
    for change in effect.changes:
        if not currencies_equal(change.currency, asset.code):
            continue
        found = holder_delta(change, asset.issuer)
        if found is None:
            continue
        holder, delta = found
        if holder == asset.issuer or abs(delta) < materiality:
            continue
        direction = Direction.BUY if delta > 0 else Direction.SELL
        base_amount = abs(delta)
        price, source = estimate_price(direction, book, price_hint)
        trades.append(
            Trade(
                id=trade_id(effect.tx_hash, holder),
                direction=direction,
                price=price,
                base_amount=base_amount,
                quote_amount=price * base_amount if price is not None else None,
                counterparty=holder,
                ledger_close_time=effect.close_time,
                tx_hash=effect.tx_hash,
                ledger_index=effect.ledger_index,
                price_source=source,
            )
        )
    return trades


class TradeDecoder:
    def __init__(self, asset: Asset, materiality: float = DEFAULT_MATERIALITY):
        if asset.issuer is None:
            raise ValueError("trades can only be decoded for issued assets")
        self.asset = asset
        self.materiality = materiality

    def decode(
        self,
        effect: TxEffect,
        price_hint: Optional[float] = None,
        book: Optional[OrderBookSnapshot] = None,
    ) -> List[Trade]:
        return decode_trades(effect, self.asset, price_hint, book, self.materiality)

    def decode_many(
        self,
        effects: List[TxEffect],
        price_hint: Optional[float] = None,
        book: Optional[OrderBookSnapshot] = None,
    ) -> List[Trade]:
        out: List[Trade] = []
        for effect in effects:
            out.extend(self.decode(effect, price_hint, book))
        logger.debug("Decoded %d trades from %d transactions", len(out), len(effects))
        return out
