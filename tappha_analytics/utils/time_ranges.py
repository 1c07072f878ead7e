"""Helpers for relative time-range strings such as ``24h``, ``7d`` or ``4w``."""

import re
from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple

_RANGE_PATTERN = re.compile(r"^\s*(\d+)\s*([mhdwM])\s*$")

_UNIT_DELTAS = {
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
    "M": timedelta(days=30),
}

# Named intervals used by pattern queries
_NAMED_RANGES = {
    "1 day": "1d",
    "1 week": "7d",
    "1 month": "30d",
    "6 months": "180d",
    "1 year": "365d",
}


def parse_time_range(value: str) -> Optional[timedelta]:
    """Parse ``"7d"``-style strings; returns None for malformed input."""
    value = _NAMED_RANGES.get(value.strip().lower(), value) if value else value
    if not value:
        return None
    match = _RANGE_PATTERN.match(value)
    if not match:
        return None
    amount, unit = match.groups()
    if int(amount) == 0:
        return None
    return int(amount) * _UNIT_DELTAS[unit]


def resolve_range(value: str, now: datetime) -> Optional[Tuple[datetime, datetime]]:
    """Resolve a relative range ending at ``now``."""
    delta = parse_time_range(value)
    if delta is None:
        return None
    return now - delta, now


def widest_range(
    values: Iterable[str], now: datetime, default: str = "7d"
) -> Tuple[datetime, datetime]:
    """Cover every valid interval in ``values``; falls back to ``default``."""
    deltas = [d for d in (parse_time_range(v) for v in values) if d is not None]
    if not deltas:
        deltas = [parse_time_range(default)]
    return now - max(deltas), now
