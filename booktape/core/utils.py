"""Small utilities."""

from __future__ import annotations

import re
from typing import Optional

DROPS_PER_XRP = 1_000_000

_HEX_CURRENCY = re.compile(r"^[0-9A-Fa-f]{40}$")


def safe_div(n: float, d: float, default: Optional[float] = None) -> Optional[float]:
    if d == 0:
        return default
    return n / d


def drops_to_xrp(drops: str | int) -> float:
    return int(drops) / DROPS_PER_XRP


def is_hex_currency(currency: str) -> bool:
    return bool(_HEX_CURRENCY.match(currency))


def currency_to_hex(currency: str) -> str:
    """Return the ledger form of a currency code.

    Three-character codes are used as-is; longer codes are ASCII-encoded,
    right-padded with zeros to 40 hex characters.
    """
    if is_hex_currency(currency):
        return currency.upper()
    if len(currency) <= 3:
        return currency
    encoded = currency.encode("ascii").hex().upper()
    return encoded.ljust(40, "0")


def hex_to_currency(code: str) -> str:
    """Decode a 40-hex currency code, stopping at the first null byte."""
    if not is_hex_currency(code):
        return code
    out = []
    for i in range(0, 40, 2):
        byte = int(code[i : i + 2], 16)
        if byte == 0:
            break
        out.append(chr(byte))
    return "".join(out)


def currencies_equal(a: str, b: str) -> bool:
    if a == b:
        return True
    return currency_to_hex(a) == currency_to_hex(b)
