"""Parse human-readable durations such as "15m" or "7d" into timedeltas."""
from __future__ import annotations

import re
from datetime import timedelta

_DURATION_RE = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d|w)?\s*$", re.IGNORECASE)

_UNIT_MILLISECONDS = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
    "w": 604_800_000,
}


def parse_duration(value, default: str | None = None) -> timedelta:
    """
    Accepts "<int><unit>" (units ms, s, m, h, d, w), a bare number of
    seconds, or a timedelta. Empty values fall back to `default`.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValueError("duration is required")
        return parse_duration(default)

    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    millis = int(amount) * _UNIT_MILLISECONDS[(unit or "s").lower()]
    if millis <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return timedelta(milliseconds=millis)
