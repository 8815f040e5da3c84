"""
desire/utils/time_utils.py

Purpose: Time helpers

- Epoch-millisecond clock used for pantry timestamps
- Pantry staleness check
"""

import time
from datetime import datetime, timezone
from typing import Callable, Optional

from desire.utils.constants import MS_PER_DAY

Clock = Callable[[], int]


def now_ms() -> int:
    """
    Current time as epoch milliseconds.
    """
    return int(time.time() * 1000)


def is_pantry_stale(last_synced_at: Optional[int], now: int, stale_after_days: int = 7) -> bool:
    """
    True when the pantry was never synced or is older than the threshold.
    Exactly at the threshold it is still fresh.
    """
    if last_synced_at is None:
        return True
    return now - last_synced_at > stale_after_days * MS_PER_DAY


def format_timestamp(ms: Optional[int], format_str: str = "%Y-%m-%d %H:%M:%S") -> str:
    """
    Formats an epoch-millisecond timestamp (UTC).
    """
    if ms is None:
        return "N/A"
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime(format_str)
