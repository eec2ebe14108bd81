"""Engine configuration.

Defaults live on the dataclass; ``EngineConfig.from_env`` overlays
``BOOKTAPE_*`` variables, loading a ``.env`` file first when present.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv  # type: ignore

DEFAULT_ENDPOINTS = [
    "wss://xrplcluster.com",
    "wss://s1.ripple.com",
    "wss://s2.ripple.com",
]

ENV_PREFIX = "BOOKTAPE_"


@dataclass
class EngineConfig:
    endpoints: List[str] = field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    request_timeout_s: float = 8.0
    poll_interval_s: float = 5.0
    # book_offers paging
    book_page_limit: int = 20
    book_page_cap: int = 3
    # noise filters
    min_quote_value: float = 0.01
    max_bid_base_amount: float = 10_000_000.0
    max_levels: Optional[int] = 15
    # account_tx paging
    tx_page_limit: int = 100
    tx_page_cap: int = 2
    materiality: float = 1e-6
    tape_capacity: int = 100
    price_hint: Optional[float] = None

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "EngineConfig":
        load_dotenv(env_file)
        cfg = cls()
        endpoints = _env("ENDPOINTS")
        if endpoints:
            cfg.endpoints = [e.strip() for e in endpoints.split(",") if e.strip()]
        cfg.request_timeout_s = _env_float("TIMEOUT_S", cfg.request_timeout_s)
        cfg.poll_interval_s = _env_float("POLL_INTERVAL_S", cfg.poll_interval_s)
        cfg.book_page_limit = _env_int("BOOK_PAGE_LIMIT", cfg.book_page_limit)
        cfg.book_page_cap = _env_int("BOOK_PAGE_CAP", cfg.book_page_cap)
        cfg.min_quote_value = _env_float("MIN_QUOTE_VALUE", cfg.min_quote_value)
        cfg.max_bid_base_amount = _env_float(
            "MAX_BID_BASE_AMOUNT", cfg.max_bid_base_amount
        )
        levels = _env("MAX_LEVELS")
        if levels is not None:
            cfg.max_levels = int(levels) if int(levels) > 0 else None
        cfg.tx_page_limit = _env_int("TX_PAGE_LIMIT", cfg.tx_page_limit)
        cfg.tx_page_cap = _env_int("TX_PAGE_CAP", cfg.tx_page_cap)
        cfg.materiality = _env_float("MATERIALITY", cfg.materiality)
        cfg.tape_capacity = _env_int("TAPE_CAPACITY", cfg.tape_capacity)
        hint = _env("PRICE_HINT")
        if hint:
            cfg.price_hint = float(hint)
        cfg.validate()
        return cfg

    def validate(self) -> None:
        if not self.endpoints:
            raise ValueError("at least one ledger endpoint is required")
        if self.book_page_cap < 1 or self.tx_page_cap < 1:
            raise ValueError("page caps must be >= 1")
        if self.request_timeout_s <= 0 or self.poll_interval_s <= 0:
            raise ValueError("timeouts and intervals must be positive")
        if self.tape_capacity < 1:
            raise ValueError("tape capacity must be >= 1")


def _env(name: str) -> Optional[str]:
    val = os.getenv(ENV_PREFIX + name)
    return val if val not in (None, "") else None


def _env_float(name: str, default: float) -> float:
    val = _env(name)
    return float(val) if val is not None else default


def _env_int(name: str, default: int) -> int:
    val = _env(name)
    return int(val) if val is not None else default
