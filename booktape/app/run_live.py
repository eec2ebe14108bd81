"""Entry point: poll one pair and print its book and tape."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from ..core.config import EngineConfig
from ..core.events import BookUpdated, EngineEvent, TradesAppended
from ..core.types import XRP, Asset, TradingPair
from ..io import metrics
from .main import build_environment

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Order book and trade tape for one ledger pair")
    p.add_argument("--currency", required=True, help="base currency code, e.g. SOLO")
    p.add_argument("--issuer", required=True, help="base currency issuer account")
    p.add_argument("--quote-currency", default="XRP")
    p.add_argument("--quote-issuer", default=None)
    p.add_argument("--interval", type=float, default=None, help="poll interval in seconds")
    p.add_argument("--cycles", type=int, default=0, help="stop after N cycles (0 = run forever)")
    p.add_argument("--dry-run", action="store_true", help="use a synthetic in-memory ledger")
    p.add_argument("--metrics-port", type=int, default=None)
    p.add_argument("--env-file", default=None)
    p.add_argument("--log-level", default="INFO")
    return p.parse_args(argv)


def build_pair(args: argparse.Namespace) -> TradingPair:
    quote = XRP
    if args.quote_currency.upper() != "XRP" or args.quote_issuer:
        quote = Asset(args.quote_currency, args.quote_issuer)
    return TradingPair(Asset(args.currency, args.issuer), quote)


def print_event(event: EngineEvent) -> None:
    if isinstance(event, BookUpdated):
        book = event.book
        ask, bid = book.best_ask(), book.best_bid()
        spread = f"{book.spread.value:.8f} ({book.spread.percent:.2f}%)" if book.spread else "n/a"
        print(
            f"[{book.as_of:%H:%M:%S}] {event.pair} "
            f"bid={bid.price if bid else 'n/a'} ask={ask.price if ask else 'n/a'} "
            f"spread={spread} levels={len(book.bids)}/{len(book.asks)}"
        )
    elif isinstance(event, TradesAppended):
        for t in event.trades[:5]:
            price = f"{t.price:.8f}" if t.price is not None else "?"
            print(f"    {t.direction.value:<4} {t.base_amount:>14.4f} @ {price} {t.counterparty} {t.tx_hash[:10]}")


async def run(args: argparse.Namespace) -> None:
    config = EngineConfig.from_env(args.env_file)
    if args.interval:
        config.poll_interval_s = args.interval
    pair = build_pair(args)
    scheduler = build_environment(config, pair, dry_run=args.dry_run, listeners=[print_event])
    scheduler.track(pair)
    try:
        if args.cycles:
            await asyncio.sleep(config.poll_interval_s * args.cycles)
        else:
            while True:
                await asyncio.sleep(3600)
    finally:
        await scheduler.close()


def main(argv: Optional[list] = None):  # pragma: no cover - manual run
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if args.metrics_port:
        metrics.serve(args.metrics_port)
        logger.info("Serving metrics on :%d", args.metrics_port)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":  # pragma: no cover
    main()
