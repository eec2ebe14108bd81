"""Validation of raw ledger responses at the boundary.

``book_offers`` offers and ``account_tx`` entries are checked against pydantic
models and converted to the typed ``Offer`` / ``TxEffect`` values the rest of
the engine works with. Any shape problem surfaces as ``MalformedDataError``;
callers skip the offending offer or transaction and keep going.

Amounts follow the ledger convention: a bare string is XRP in drops, an object
``{currency, issuer, value}`` is an issued asset.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..core.clock import ripple_time_to_datetime
from ..core.errors import MalformedDataError
from ..core.types import (
    XRP,
    Asset,
    AssetAmount,
    Offer,
    TrustLineChange,
    TxEffect,
)
from ..core.utils import drops_to_xrp

logger = logging.getLogger(__name__)

TRUST_LINE_ENTRY = "RippleState"
NODE_KINDS = ("ModifiedNode", "CreatedNode", "DeletedNode")


class _LedgerModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class IssuedAmount(_LedgerModel):
    currency: str
    value: str
    issuer: Optional[str] = None


RawAmount = Union[str, IssuedAmount]


class RawOffer(_LedgerModel):
    account: str = Field(alias="Account")
    taker_gets: RawAmount = Field(alias="TakerGets")
    taker_pays: RawAmount = Field(alias="TakerPays")
    sequence: Optional[int] = Field(default=None, alias="Sequence")
    index: Optional[str] = None
    taker_gets_funded: Optional[RawAmount] = None
    taker_pays_funded: Optional[RawAmount] = None


class LimitAmount(_LedgerModel):
    issuer: str
    currency: Optional[str] = None
    value: Optional[str] = None


class RippleStateFields(_LedgerModel):
    balance: Optional[IssuedAmount] = Field(default=None, alias="Balance")
    high_limit: Optional[LimitAmount] = Field(default=None, alias="HighLimit")
    low_limit: Optional[LimitAmount] = Field(default=None, alias="LowLimit")


class LedgerNode(_LedgerModel):
    ledger_entry_type: str = Field(alias="LedgerEntryType")
    final_fields: Optional[Dict[str, Any]] = Field(default=None, alias="FinalFields")
    new_fields: Optional[Dict[str, Any]] = Field(default=None, alias="NewFields")
    previous_fields: Optional[Dict[str, Any]] = Field(
        default=None, alias="PreviousFields"
    )


class TxMeta(_LedgerModel):
    transaction_result: str = Field(alias="TransactionResult")
    affected_nodes: List[Any] = Field(
        default_factory=list, alias="AffectedNodes"
    )


class TxBody(_LedgerModel):
    hash: Optional[str] = None
    date: Optional[int] = None
    ledger_index: Optional[int] = None


class TxEntry(_LedgerModel):
    """One ``account_tx`` row, API v1 (``tx``) or v2 (``tx_json`` + ``hash``)."""

    meta: Union[TxMeta, str]
    tx: Optional[TxBody] = None
    tx_json: Optional[TxBody] = None
    hash: Optional[str] = None
    ledger_index: Optional[int] = None
    close_time_iso: Optional[str] = None


def parse_amount(raw: RawAmount) -> AssetAmount:
    try:
        if isinstance(raw, str):
            return AssetAmount(XRP, drops_to_xrp(raw))
        return AssetAmount(Asset(raw.currency, raw.issuer), float(raw.value))
    except ValueError as e:
        raise MalformedDataError(f"bad amount {raw!r}") from e


def parse_offer(raw: Dict[str, Any]) -> Offer:
    try:
        o = RawOffer.model_validate(raw)
    except ValidationError as e:
        raise MalformedDataError(f"malformed offer: {e.error_count()} errors") from e
    return Offer(
        account=o.account,
        taker_gets=parse_amount(o.taker_gets),
        taker_pays=parse_amount(o.taker_pays),
        sequence=o.sequence,
        index=o.index,
        taker_gets_funded=(
            parse_amount(o.taker_gets_funded) if o.taker_gets_funded is not None else None
        ),
        taker_pays_funded=(
            parse_amount(o.taker_pays_funded) if o.taker_pays_funded is not None else None
        ),
    )


def parse_trust_line_node(wrapper: Dict[str, Any]) -> Optional[TrustLineChange]:
    """Convert one ``AffectedNodes`` entry.

    Returns None for nodes that are not trust lines or carry no balance
    movement; raises ``MalformedDataError`` for trust lines that cannot be read.
    """
    if not isinstance(wrapper, dict) or len(wrapper) != 1:
        raise MalformedDataError("affected node must have exactly one kind key")
    kind, body = next(iter(wrapper.items()))
    if kind not in NODE_KINDS:
        raise MalformedDataError(f"unknown affected node kind {kind!r}")
    try:
        node = LedgerNode.model_validate(body)
    except ValidationError as e:
        raise MalformedDataError(f"malformed {kind}") from e
    if node.ledger_entry_type != TRUST_LINE_ENTRY:
        return None

    current_raw = node.new_fields if kind == "CreatedNode" else node.final_fields
    try:
        current = RippleStateFields.model_validate(current_raw or {})
        previous = RippleStateFields.model_validate(node.previous_fields or {})
    except ValidationError as e:
        raise MalformedDataError(f"malformed trust line in {kind}") from e
    if current.balance is None or current.high_limit is None or current.low_limit is None:
        raise MalformedDataError(f"trust line in {kind} lacks balance or limits")

    if kind == "CreatedNode":
        prev_value = "0"
    elif previous.balance is not None:
        prev_value = previous.balance.value
    else:
        # Flags or limits changed, balance did not.
        return None
    try:
        final_balance = float(current.balance.value)
        previous_balance = float(prev_value)
    except ValueError as e:
        raise MalformedDataError("non-numeric trust line balance") from e
    return TrustLineChange(
        entry_kind=kind,
        currency=current.balance.currency,
        high_account=current.high_limit.issuer,
        low_account=current.low_limit.issuer,
        final_balance=final_balance,
        previous_balance=previous_balance,
    )


def _close_time(entry: TxEntry, body: TxBody) -> Optional[datetime]:
    if body.date is not None:
        return ripple_time_to_datetime(body.date)
    if entry.close_time_iso:
        try:
            dt = datetime.fromisoformat(entry.close_time_iso.replace("Z", "+00:00"))
        except ValueError as e:
            raise MalformedDataError("bad close_time_iso") from e
        # Ledger close times are UTC even when the offset is omitted.
        return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)
    return None


def parse_tx_entry(raw: Dict[str, Any]) -> TxEffect:
    try:
        entry = TxEntry.model_validate(raw)
    except ValidationError as e:
        raise MalformedDataError(f"malformed account_tx entry: {e.error_count()} errors") from e
    if isinstance(entry.meta, str):
        raise MalformedDataError("binary metadata is not supported")
    body = entry.tx or entry.tx_json or TxBody()
    tx_hash = entry.hash or body.hash
    if not tx_hash:
        raise MalformedDataError("account_tx entry has no transaction hash")

    changes = []
    for wrapper in entry.meta.affected_nodes:
        try:
            change = parse_trust_line_node(wrapper)
        except MalformedDataError as e:
            logger.debug("Skipping affected node in %s: %s", tx_hash, e)
            continue
        if change is not None:
            changes.append(change)
    return TxEffect(
        tx_hash=tx_hash,
        result=entry.meta.transaction_result,
        close_time=_close_time(entry, body),
        ledger_index=entry.ledger_index or body.ledger_index,
        changes=tuple(changes),
    )
