"""Ledger time conversion and pacing for the polling loops."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

# Ledger close times count seconds from 2000-01-01T00:00:00Z, which is
# 946,684,800 seconds after the Unix epoch.
RIPPLE_EPOCH_OFFSET = 946_684_800


def ripple_time_to_datetime(seconds: int | float) -> datetime:
    return datetime.fromtimestamp(seconds + RIPPLE_EPOCH_OFFSET, tz=timezone.utc)


def datetime_to_ripple_time(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp()) - RIPPLE_EPOCH_OFFSET


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PollClock:
    speed: float = 1.0  # >1 shortens every interval, handy in demos

    def interval(self, seconds: float) -> float:
        return max(0.0, seconds) / max(1e-9, self.speed)
