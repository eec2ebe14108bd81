"""Paginated ``account_tx`` queries feeding the trade decoder."""

from __future__ import annotations

import logging
from typing import List, Optional

from ..core.errors import MalformedDataError
from ..core.types import TxEffect
from ..ledger.client import LedgerClient
from ..ledger.schema import parse_tx_entry

logger = logging.getLogger(__name__)


class TradeHistoryFetcher:
    def __init__(self, client: LedgerClient, limit: int = 100, page_cap: int = 2):
        self.client = client
        self.limit = limit
        self.page_cap = page_cap

    async def fetch(self, account: str, page_cap: Optional[int] = None) -> List[TxEffect]:
        """Recent transactions touching ``account``, newest first."""
        effects: List[TxEffect] = []
        async for page in self.client.paginate(
            "account_tx",
            "transactions",
            page_cap if page_cap is not None else self.page_cap,
            account=account,
            limit=self.limit,
            forward=False,
        ):
            for raw in page:
                try:
                    effects.append(parse_tx_entry(raw))
                except MalformedDataError as e:
                    logger.debug("Skipping account_tx entry for %s: %s", account, e)
        return effects
