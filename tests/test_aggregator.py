import random
from datetime import datetime, timezone

import pytest

from booktape.book.aggregator import BookAggregator
from booktape.core.types import XRP, Asset, AssetAmount, Offer, Side, TradingPair

TOKEN = Asset("SOLO", "rsoLo2S1kiGeCcn6hCUXVrCpGMWLrRrLZz")
PAIR = TradingPair(TOKEN, XRP)
AS_OF = datetime(2025, 1, 1, tzinfo=timezone.utc)


def ask(price, amount, owner="rAsker"):
    return Offer(owner, AssetAmount(TOKEN, amount), AssetAmount(XRP, price * amount))


def bid(price, amount, owner="rBidder"):
    return Offer(owner, AssetAmount(XRP, price * amount), AssetAmount(TOKEN, amount))


def test_worked_example_best_prices_and_spread():
    agg = BookAggregator()
    snap = agg.aggregate(
        [ask(0.12, 50), ask(0.10, 100)],
        [bid(0.07, 40), bid(0.09, 80)],
        PAIR,
        as_of=AS_OF,
    )
    assert snap.asks[0].price == pytest.approx(0.10)
    assert snap.bids[0].price == pytest.approx(0.09)
    assert snap.spread.value == pytest.approx(0.01)
    assert snap.spread.percent == pytest.approx(10.0)
    assert snap.as_of == AS_OF


def test_ladders_sorted_and_cumulative():
    rng = random.Random(7)
    asks = [ask(rng.uniform(0.1, 0.2), rng.uniform(1, 100)) for _ in range(30)]
    bids = [bid(rng.uniform(0.01, 0.1), rng.uniform(1, 100)) for _ in range(30)]
    snap = BookAggregator().aggregate(asks, bids, PAIR)

    for a, b in zip(snap.asks, snap.asks[1:]):
        assert a.price <= b.price
    for a, b in zip(snap.bids, snap.bids[1:]):
        assert a.price >= b.price
    for ladder in (snap.asks, snap.bids):
        for a, b in zip(ladder, ladder[1:]):
            assert a.cumulative_amount <= b.cumulative_amount
        assert ladder[-1].cumulative_amount == pytest.approx(sum(l.amount for l in ladder))
        assert ladder[-1].average_price == pytest.approx(
            ladder[-1].cumulative_quote / ladder[-1].cumulative_amount
        )


def test_zero_size_offers_are_dropped():
    zero_base = Offer("rZero", AssetAmount(TOKEN, 0.0), AssetAmount(XRP, 5.0))
    zero_quote = Offer("rZeroQ", AssetAmount(XRP, 0.0), AssetAmount(TOKEN, 5.0))
    snap = BookAggregator().aggregate([zero_base, ask(0.1, 10)], [zero_quote], PAIR)
    assert len(snap.asks) == 1
    assert snap.asks[0].owner_account == "rAsker"
    assert snap.bids == ()


def test_dust_filter_uses_quote_value():
    agg = BookAggregator(min_quote_value=0.01)
    snap = agg.aggregate([ask(0.001, 5), ask(0.1, 10)], [bid(0.0001, 50)], PAIR)
    assert [l.amount for l in snap.asks] == [10]
    assert snap.bids == ()


def test_size_sanity_filter_applies_to_bids_only():
    agg = BookAggregator(max_bid_base_amount=10_000_000)
    huge_bid = bid(0.0001, 20_000_000)
    huge_ask = ask(0.5, 20_000_000)
    snap = agg.aggregate([huge_ask], [huge_bid, bid(0.09, 10)], PAIR)
    assert len(snap.asks) == 1
    assert [l.amount for l in snap.bids] == [10]


def test_empty_side_gives_no_spread():
    snap = BookAggregator().aggregate([ask(0.1, 10)], [], PAIR)
    assert snap.spread is None
    assert snap.mid() == pytest.approx(0.1)
    empty = BookAggregator().aggregate([], [], PAIR)
    assert empty.is_empty()
    assert empty.mid() is None


def test_crossed_book_has_negative_spread():
    snap = BookAggregator().aggregate([ask(0.08, 10)], [bid(0.09, 10)], PAIR)
    assert snap.spread.value == pytest.approx(-0.01)


def test_reaggregating_filtered_offers_is_identical():
    agg = BookAggregator(min_quote_value=0.01, max_levels=None)
    asks = [ask(0.1, 10), ask(0.0001, 1), ask(0.2, 3), ask(0.15, 0)]
    bids = [bid(0.05, 10), bid(0.00001, 2), bid(0.04, 20_000_000), bid(0.06, 1)]
    first = agg.aggregate(asks, bids, PAIR, as_of=AS_OF)
    second = agg.aggregate(
        agg.filter_offers(asks, PAIR, Side.ASK),
        agg.filter_offers(bids, PAIR, Side.BID),
        PAIR,
        as_of=AS_OF,
    )
    assert second == first


def test_funded_amounts_override_nominal():
    offer = Offer(
        "rPartial",
        AssetAmount(TOKEN, 100.0),
        AssetAmount(XRP, 10.0),
        taker_gets_funded=AssetAmount(TOKEN, 40.0),
        taker_pays_funded=AssetAmount(XRP, 4.0),
    )
    snap = BookAggregator().aggregate([offer], [], PAIR)
    assert snap.asks[0].amount == 40.0
    assert snap.asks[0].price == pytest.approx(0.1)


def test_offers_for_other_assets_are_skipped():
    other = Asset("USD", "rSomeoneElse")
    stray = Offer("rStray", AssetAmount(other, 10.0), AssetAmount(XRP, 1.0))
    snap = BookAggregator().aggregate([stray, ask(0.1, 10)], [], PAIR)
    assert [l.owner_account for l in snap.asks] == ["rAsker"]


def test_hex_currency_offers_match_pair():
    hex_token = Asset("534F4C4F00000000000000000000000000000000", TOKEN.issuer)
    offer = Offer("rHex", AssetAmount(hex_token, 10.0), AssetAmount(XRP, 1.0))
    snap = BookAggregator().aggregate([offer], [], PAIR)
    assert len(snap.asks) == 1


def test_max_levels_truncates_after_sort():
    agg = BookAggregator(max_levels=2)
    snap = agg.aggregate([ask(0.3, 1), ask(0.1, 1), ask(0.2, 1)], [], PAIR)
    assert [round(l.price, 2) for l in snap.asks] == [0.1, 0.2]
    assert snap.asks[-1].cumulative_amount == pytest.approx(2)


def test_equal_prices_keep_input_order():
    snap = BookAggregator().aggregate(
        [], [bid(0.05, 1, "rFirst"), bid(0.05, 2, "rSecond"), bid(0.06, 1, "rTop")], PAIR
    )
    assert [l.owner_account for l in snap.bids] == ["rTop", "rFirst", "rSecond"]
