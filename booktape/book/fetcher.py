"""Paginated ``book_offers`` queries for one side of a pair."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from ..core.errors import MalformedDataError
from ..core.types import Offer, Side, TradingPair
from ..ledger.client import LedgerClient
from ..ledger.schema import parse_offer

logger = logging.getLogger(__name__)


class OfferBookFetcher:
    """Reads resting offers for one leg of a pair.

    ``page_cap`` is a hard bound on round trips per call: a deep book yields a
    truncated offer set rather than stalling the poll cycle.
    """

    def __init__(self, client: LedgerClient, limit: int = 20, page_cap: int = 3):
        self.client = client
        self.limit = limit
        self.page_cap = page_cap

    async def fetch_offers(
        self, pair: TradingPair, side: Side, page_cap: Optional[int] = None
    ) -> List[Offer]:
        taker_gets, taker_pays = pair.leg(side)
        offers: List[Offer] = []
        skipped = 0
        async for page in self.client.paginate(
            "book_offers",
            "offers",
            page_cap if page_cap is not None else self.page_cap,
            taker_gets=taker_gets.to_request(),
            taker_pays=taker_pays.to_request(),
            limit=self.limit,
        ):
            for raw in page:
                try:
                    offers.append(parse_offer(raw))
                except MalformedDataError as e:
                    skipped += 1
                    logger.debug("Skipping offer on %s %s: %s", pair, side.value, e)
        if skipped:
            logger.debug("%s %s: %d malformed offers skipped", pair, side.value, skipped)
        return offers

    async def fetch_both(self, pair: TradingPair) -> Tuple[List[Offer], List[Offer]]:
        """Return ``(asks, bids)``, fetched concurrently."""
        asks, bids = await asyncio.gather(
            self.fetch_offers(pair, Side.ASK), self.fetch_offers(pair, Side.BID)
        )
        return asks, bids
