import asyncio

from booktape.book.fetcher import OfferBookFetcher
from booktape.core.types import XRP, Asset, Side, TradingPair
from booktape.core.utils import currency_to_hex
from booktape.ledger.client import LedgerClient
from booktape.ledger.mock import MockNetwork, ok

ISSUER = "rsoLo2S1kiGeCcn6hCUXVrCpGMWLrRrLZz"
PAIR = TradingPair(Asset("SOLO", ISSUER), XRP)
URL = "mock://node"


def solo(value):
    return {"currency": currency_to_hex("SOLO"), "issuer": ISSUER, "value": str(value)}


def raw_ask(n):
    return {"Account": f"rOwner{n}", "TakerGets": solo(10), "TakerPays": str(1_000_000 + n), "Sequence": n}


def fetcher_for(handler, **kwargs):
    network = MockNetwork({URL: handler})
    client = LedgerClient([URL], timeout=1.0, transport_factory=network.factory)
    return OfferBookFetcher(client, **kwargs), network


def test_request_shape_for_each_leg():
    fetcher, network = fetcher_for(lambda p: ok({"offers": []}))

    async def run():
        await fetcher.fetch_both(PAIR)

    asyncio.run(run())
    reqs = network.requests("book_offers")
    assert len(reqs) == 2
    legs = {r["taker_gets"]["currency"]: r for r in reqs}
    ask_req = legs[currency_to_hex("SOLO")]
    assert ask_req["taker_gets"] == {"currency": currency_to_hex("SOLO"), "issuer": ISSUER}
    assert ask_req["taker_pays"] == {"currency": "XRP"}
    assert ask_req["limit"] == 20
    assert "marker" not in ask_req
    assert legs["XRP"]["taker_pays"]["issuer"] == ISSUER


def test_pagination_stops_at_page_cap_with_endless_marker():
    calls = {"n": 0}

    def handler(payload):
        calls["n"] += 1
        return ok({"offers": [raw_ask(calls["n"])], "marker": f"m{calls['n']}"})

    fetcher, network = fetcher_for(handler, page_cap=3)
    offers = asyncio.run(fetcher.fetch_offers(PAIR, Side.ASK))
    assert len(offers) == 3
    reqs = network.requests("book_offers")
    assert len(reqs) == 3
    assert reqs[1]["marker"] == "m1"
    assert reqs[2]["marker"] == "m2"


def test_pagination_stops_on_repeated_marker():
    fetcher, network = fetcher_for(
        lambda p: ok({"offers": [raw_ask(1)], "marker": "stuck"}), page_cap=10
    )
    asyncio.run(fetcher.fetch_offers(PAIR, Side.ASK))
    assert len(network.requests("book_offers")) == 2


def test_single_page_without_marker():
    fetcher, network = fetcher_for(lambda p: ok({"offers": [raw_ask(1), raw_ask(2)]}))
    offers = asyncio.run(fetcher.fetch_offers(PAIR, Side.ASK, page_cap=5))
    assert [o.account for o in offers] == ["rOwner1", "rOwner2"]
    assert len(network.requests()) == 1


def test_malformed_offers_are_skipped():
    page = [
        raw_ask(1),
        {"Account": "rBroken"},
        {"Account": "rBadDrops", "TakerGets": solo(1), "TakerPays": "lots"},
        raw_ask(2),
    ]
    fetcher, _ = fetcher_for(lambda p: ok({"offers": page}))
    offers = asyncio.run(fetcher.fetch_offers(PAIR, Side.ASK))
    assert [o.account for o in offers] == ["rOwner1", "rOwner2"]
    assert offers[0].taker_pays.value == 1.000001
