"""Engine bootstrap for live or dry-run modes."""

from __future__ import annotations

from dataclasses import replace
from typing import List, Optional

from ..core.config import EngineConfig
from ..core.events import Listener
from ..core.types import TradingPair
from ..ledger.mock import MockNetwork, SyntheticLedger
from .scheduler import PollingScheduler, default_session_factory

DRY_RUN_ENDPOINT = "mock://synthetic"


def build_environment(
    config: EngineConfig,
    pair: TradingPair,
    dry_run: bool = False,
    listeners: Optional[List[Listener]] = None,
    seed: Optional[int] = None,
) -> PollingScheduler:
    """Return a scheduler wired for ``pair``.

    In dry-run mode every session talks to an in-memory ``SyntheticLedger``
    instead of the configured endpoints.
    """
    if dry_run:
        network = MockNetwork({DRY_RUN_ENDPOINT: SyntheticLedger(pair, seed=seed)})
        config = replace(config, endpoints=[DRY_RUN_ENDPOINT])
        factory = default_session_factory(config, network.factory)
    else:
        factory = default_session_factory(config)
    return PollingScheduler(config, factory, listeners)
