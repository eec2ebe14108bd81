from datetime import datetime, timezone

import pytest

from booktape.core.errors import MalformedDataError
from booktape.ledger.schema import parse_offer, parse_trust_line_node, parse_tx_entry

ISSUER = "rIssuer"
HOLDER = "rHolder"


def balance(value, currency="USD"):
    return {"currency": currency, "issuer": "rrrrrrrrrrrrrrrrrrrrBZbvji", "value": str(value)}


def trust_line(kind, final, prev=None, high=ISSUER, low=HOLDER):
    fields = {
        "Balance": balance(final),
        "HighLimit": {"currency": "USD", "issuer": high, "value": "0"},
        "LowLimit": {"currency": "USD", "issuer": low, "value": "1000"},
    }
    body = {"LedgerEntryType": "RippleState"}
    body["NewFields" if kind == "CreatedNode" else "FinalFields"] = fields
    if prev is not None:
        body["PreviousFields"] = {"Balance": balance(prev)}
    return {kind: body}


def test_parse_offer_xrp_and_issued():
    offer = parse_offer(
        {
            "Account": "rMaker",
            "TakerGets": {"currency": "USD", "issuer": ISSUER, "value": "12.5"},
            "TakerPays": "2500000",
            "Sequence": 7,
            "index": "ABC",
            "taker_gets_funded": {"currency": "USD", "issuer": ISSUER, "value": "5"},
            "Flags": 0,
        }
    )
    assert offer.account == "rMaker"
    assert offer.taker_gets.value == 12.5
    assert offer.taker_gets.asset.issuer == ISSUER
    assert offer.taker_pays.asset.is_xrp
    assert offer.taker_pays.value == 2.5
    assert offer.sequence == 7
    assert offer.gets.value == 5.0
    assert offer.pays.value == 2.5


@pytest.mark.parametrize(
    "raw",
    [
        {"TakerGets": "1", "TakerPays": "1"},
        {"Account": "rX", "TakerGets": "1"},
        {"Account": "rX", "TakerGets": {"currency": "USD", "value": "abc"}, "TakerPays": "1"},
        {"Account": "rX", "TakerGets": "1.5", "TakerPays": "1"},
    ],
)
def test_parse_offer_rejects_bad_shapes(raw):
    with pytest.raises(MalformedDataError):
        parse_offer(raw)


def test_modified_trust_line():
    change = parse_trust_line_node(trust_line("ModifiedNode", 130, 100))
    assert change.entry_kind == "ModifiedNode"
    assert change.currency == "USD"
    assert (change.high_account, change.low_account) == (ISSUER, HOLDER)
    assert (change.previous_balance, change.final_balance) == (100.0, 130.0)


def test_created_trust_line_starts_from_zero():
    change = parse_trust_line_node(trust_line("CreatedNode", 25))
    assert change.previous_balance == 0.0
    assert change.final_balance == 25.0


def test_deleted_trust_line_uses_previous_balance():
    change = parse_trust_line_node(trust_line("DeletedNode", 0, 40))
    assert change.entry_kind == "DeletedNode"
    assert change.final_balance - change.previous_balance == -40.0


def test_nodes_without_balance_movement_or_other_types_are_ignored():
    assert parse_trust_line_node(trust_line("ModifiedNode", 130)) is None
    offer_node = {"ModifiedNode": {"LedgerEntryType": "Offer", "FinalFields": {}}}
    assert parse_trust_line_node(offer_node) is None


def test_broken_trust_line_raises():
    node = {"ModifiedNode": {"LedgerEntryType": "RippleState", "FinalFields": {"Balance": balance(1)}}}
    with pytest.raises(MalformedDataError):
        parse_trust_line_node(node)
    with pytest.raises(MalformedDataError):
        parse_trust_line_node({"WeirdNode": {}})


def _entry_v1(nodes, result="tesSUCCESS"):
    return {
        "tx": {"hash": "H1", "date": 0, "ledger_index": 42},
        "meta": {"TransactionResult": result, "AffectedNodes": nodes},
        "validated": True,
    }


def test_parse_tx_entry_v1_skips_malformed_nodes():
    nodes = [
        trust_line("ModifiedNode", 130, 100),
        {"ModifiedNode": {"LedgerEntryType": "RippleState"}},
        {"ModifiedNode": {"LedgerEntryType": "AccountRoot", "FinalFields": {}}},
    ]
    effect = parse_tx_entry(_entry_v1(nodes))
    assert effect.tx_hash == "H1"
    assert effect.ledger_index == 42
    assert effect.close_time == datetime(2000, 1, 1, tzinfo=timezone.utc)
    assert effect.succeeded
    assert len(effect.changes) == 1


def test_parse_tx_entry_v2_shape():
    raw = {
        "hash": "H2",
        "ledger_index": 77,
        "close_time_iso": "2024-05-01T12:00:00Z",
        "tx_json": {"TransactionType": "OfferCreate"},
        "meta": {"TransactionResult": "tecPATH_DRY", "AffectedNodes": []},
    }
    effect = parse_tx_entry(raw)
    assert effect.tx_hash == "H2"
    assert effect.ledger_index == 77
    assert effect.close_time == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
    assert not effect.succeeded


def test_parse_tx_entry_rejects_binary_or_hashless():
    with pytest.raises(MalformedDataError):
        parse_tx_entry({"tx": {"hash": "H"}, "meta": "201C0000"})
    with pytest.raises(MalformedDataError):
        parse_tx_entry({"tx": {}, "meta": {"TransactionResult": "tesSUCCESS"}})
    with pytest.raises(MalformedDataError):
        parse_tx_entry({"tx": {"hash": "H"}})


def test_non_object_affected_node_does_not_drop_the_transaction():
    effect = parse_tx_entry(_entry_v1([trust_line("ModifiedNode", 130, 100), "garbage", 42, None]))
    assert len(effect.changes) == 1
    assert effect.changes[0].final_balance == 130.0


def test_close_time_without_offset_is_utc():
    raw = {
        "hash": "H3",
        "close_time_iso": "2024-01-01T00:00:01",
        "meta": {"TransactionResult": "tesSUCCESS", "AffectedNodes": []},
    }
    effect = parse_tx_entry(raw)
    assert effect.close_time == datetime(2024, 1, 1, 0, 0, 1, tzinfo=timezone.utc)
    assert effect.close_time.tzinfo is not None
