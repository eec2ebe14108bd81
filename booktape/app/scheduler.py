"""Periodic refresh of order books and trade tapes, one timer per pair.

Each tracked pair gets a ``PairSession`` with its own ledger connection, book
state and tape. On every tick the book refresh and the tape refresh start as
separate tasks so a slow ``book_offers`` round trip never holds back trade
decoding (or the reverse). If the previous refresh of the same kind is still
running, that kind is skipped for this tick rather than queued.

Untracking a pair cancels its timer and its ``CancelToken``. Refreshes already
in flight run to completion in the background, but their results are dropped,
and the connection is closed once they finish.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Set

from ..book.aggregator import BookAggregator
from ..book.fetcher import OfferBookFetcher
from ..core.clock import PollClock
from ..core.config import EngineConfig
from ..core.errors import BookTapeError
from ..core.events import BookUpdated, EngineEvent, Listener, TradesAppended
from ..core.types import OrderBookSnapshot, Trade, TradingPair
from ..io import metrics
from ..ledger.client import LedgerClient, TransportFactory, transport_for
from ..state.book import BookState
from ..state.tape import TradeTape
from ..tape.decoder import TradeDecoder
from ..tape.history import TradeHistoryFetcher

logger = logging.getLogger(__name__)

BOOK = "book"
TAPE = "tape"


class CancelToken:
    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


@dataclass
class PairSession:
    pair: TradingPair
    client: LedgerClient
    fetcher: OfferBookFetcher
    aggregator: BookAggregator
    history: TradeHistoryFetcher
    decoder: Optional[TradeDecoder]
    book: BookState
    tape: TradeTape
    price_hint: Optional[float] = None
    token: CancelToken = field(default_factory=CancelToken)
    inflight: Dict[str, asyncio.Task] = field(default_factory=dict)
    timer: Optional[asyncio.Task] = None

    async def refresh_book(self) -> Optional[OrderBookSnapshot]:
        """Fetch both sides, aggregate, then swap the snapshot in."""
        asks, bids = await self.fetcher.fetch_both(self.pair)
        snapshot = self.aggregator.aggregate(asks, bids, self.pair)
        if self.token.cancelled:
            logger.debug("Discarding book for untracked pair %s", self.pair)
            return None
        self.book.push(snapshot)
        return snapshot

    async def refresh_tape(self) -> List[Trade]:
        """Fetch the issuer's recent transactions and store any new trades.

        Pairs whose base is XRP have no issuer to watch; their tape stays empty.
        """
        if self.decoder is None:
            return []
        effects = await self.history.fetch(self.pair.base.issuer)
        trades = self.decoder.decode_many(effects, self.price_hint, self.book.last())
        if self.token.cancelled:
            logger.debug("Discarding %d trades for untracked pair %s", len(trades), self.pair)
            return []
        return self.tape.insert_many(trades)


SessionFactory = Callable[[TradingPair], PairSession]


def default_session_factory(
    config: EngineConfig, transport_factory: TransportFactory = transport_for
) -> SessionFactory:
    def build(pair: TradingPair) -> PairSession:
        client = LedgerClient(
            config.endpoints,
            timeout=config.request_timeout_s,
            transport_factory=transport_factory,
            label=f"for {pair}",
        )
        return PairSession(
            pair=pair,
            client=client,
            fetcher=OfferBookFetcher(client, config.book_page_limit, config.book_page_cap),
            aggregator=BookAggregator(
                config.min_quote_value, config.max_bid_base_amount, config.max_levels
            ),
            history=TradeHistoryFetcher(client, config.tx_page_limit, config.tx_page_cap),
            decoder=(
                TradeDecoder(pair.base, config.materiality)
                if pair.base.issuer is not None
                else None
            ),
            book=BookState(pair),
            tape=TradeTape(config.tape_capacity),
            price_hint=config.price_hint,
        )

    return build


class PollingScheduler:
    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        session_factory: Optional[SessionFactory] = None,
        listeners: Optional[List[Listener]] = None,
        clock: Optional[PollClock] = None,
    ):
        self.config = config or EngineConfig()
        self.session_factory = session_factory or default_session_factory(self.config)
        self.listeners: List[Listener] = list(listeners or [])
        self.clock = clock or PollClock()
        self.sessions: Dict[str, PairSession] = {}
        self._draining: Set[asyncio.Task] = set()

    def session(self, pair: TradingPair) -> Optional[PairSession]:
        return self.sessions.get(pair.key)

    def book(self, pair: TradingPair) -> Optional[OrderBookSnapshot]:
        s = self.session(pair)
        return s.book.last() if s else None

    def tape(self, pair: TradingPair) -> Optional[TradeTape]:
        s = self.session(pair)
        return s.tape if s else None

    def track(self, pair: TradingPair, start: bool = True) -> PairSession:
        existing = self.session(pair)
        if existing is not None:
            return existing
        session = self.session_factory(pair)
        self.sessions[pair.key] = session
        if start:
            session.timer = asyncio.create_task(self._run_timer(session))
        logger.info("Tracking %s", pair)
        return session

    async def untrack(self, pair: TradingPair) -> None:
        session = self.sessions.pop(pair.key, None)
        if session is None:
            return
        session.token.cancel()
        if session.timer is not None:
            session.timer.cancel()
            try:
                await session.timer
            except asyncio.CancelledError:
                pass
        drain = asyncio.create_task(self._drain(session))
        self._draining.add(drain)
        drain.add_done_callback(self._draining.discard)
        logger.info("Stopped tracking %s", pair)

    async def switch(self, old: Optional[TradingPair], new: TradingPair) -> PairSession:
        """Replace the displayed pair; nothing from ``old`` reaches ``new``."""
        if old is not None and old.key != new.key:
            await self.untrack(old)
        return self.track(new)

    def tick(self, pair: TradingPair) -> List[asyncio.Task]:
        """Launch the refreshes that are not already running for ``pair``."""
        session = self.session(pair)
        if session is None or session.token.cancelled:
            return []
        launched = []
        for kind, refresh in ((BOOK, session.refresh_book), (TAPE, session.refresh_tape)):
            running = session.inflight.get(kind)
            if running is not None and not running.done():
                logger.debug("Previous %s refresh for %s still running; skipping", kind, pair)
                metrics.inc_skipped(pair.key, kind)
                continue
            task = asyncio.create_task(self._guarded(session, kind, refresh))
            session.inflight[kind] = task
            launched.append(task)
        return launched

    async def wait_idle(self, pair: TradingPair) -> None:
        session = self.session(pair)
        if session is not None:
            await asyncio.gather(*session.inflight.values(), return_exceptions=True)

    async def close(self) -> None:
        for key in list(self.sessions):
            await self.untrack(self.sessions[key].pair)
        if self._draining:
            await asyncio.gather(*self._draining, return_exceptions=True)

    async def _run_timer(self, session: PairSession) -> None:
        while not session.token.cancelled:
            self.tick(session.pair)
            await asyncio.sleep(self.clock.interval(self.config.poll_interval_s))

    async def _guarded(
        self, session: PairSession, kind: str, refresh: Callable[[], Awaitable]
    ) -> None:
        pair = session.pair
        try:
            result = await refresh()
        except BookTapeError as e:
            # Previous snapshot/tape stay in place; the next tick retries.
            logger.warning("%s refresh for %s failed: %s", kind, pair, e)
            metrics.inc_refresh(pair.key, kind, "error")
            return
        except Exception:
            logger.exception("Unexpected error in %s refresh for %s", kind, pair)
            metrics.inc_refresh(pair.key, kind, "error")
            return
        if session.token.cancelled:
            metrics.inc_refresh(pair.key, kind, "discarded")
            return
        metrics.inc_refresh(pair.key, kind, "ok")
        if kind == BOOK and result is not None:
            self._emit(BookUpdated(pair, result, time.time()))
        elif kind == TAPE and result:
            metrics.inc_trades(pair.key, len(result))
            self._emit(TradesAppended(pair, result, time.time()))

    def _emit(self, event: EngineEvent) -> None:
        for listener in self.listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Listener failed on %s", type(event).__name__)

    async def _drain(self, session: PairSession) -> None:
        if session.inflight:
            await asyncio.gather(*session.inflight.values(), return_exceptions=True)
        await session.client.close()
