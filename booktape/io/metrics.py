"""Prometheus instrumentation for the polling engine."""

from __future__ import annotations

from prometheus_client import Counter, start_http_server

refreshes_total = Counter(
    "booktape_refreshes_total",
    "Book and tape refreshes by outcome",
    ["pair", "kind", "outcome"],
)
failovers_total = Counter(
    "booktape_endpoint_failovers_total",
    "Ledger endpoint failovers, labelled by the endpoint that failed",
    ["endpoint"],
)
trades_decoded_total = Counter(
    "booktape_trades_decoded_total", "Trades newly stored on a tape", ["pair"]
)
ticks_skipped_total = Counter(
    "booktape_ticks_skipped_total",
    "Refreshes skipped because the previous one was still running",
    ["pair", "kind"],
)


def inc_refresh(pair: str, kind: str, outcome: str) -> None:
    refreshes_total.labels(pair=pair, kind=kind, outcome=outcome).inc()


def inc_failover(endpoint: str) -> None:
    failovers_total.labels(endpoint=endpoint).inc()


def inc_trades(pair: str, n: int) -> None:
    if n:
        trades_decoded_total.labels(pair=pair).inc(n)


def inc_skipped(pair: str, kind: str) -> None:
    ticks_skipped_total.labels(pair=pair, kind=kind).inc()


def serve(port: int) -> None:
    start_http_server(port)
