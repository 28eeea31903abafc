"""
Resolve client-supplied dates or timestamps into absolute UTC millisecond ranges.

Calendar dates are interpreted as local days at a fixed UTC offset, so
``2025-10-01`` at UTC+4 spans ``2025-09-30T20:00:00Z`` to ``2025-10-01T19:59:59Z``.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from candle_gateway.errors import MalformedDateError


@dataclass(frozen=True)
class FetchRange:
    """Inclusive UTC millisecond bounds."""

    start_utc_ms: int
    end_utc_ms: int

    @property
    def is_empty(self) -> bool:
        return self.end_utc_ms < self.start_utc_ms


def _parse_local_date(date_str: str) -> tuple[int, int, int]:
    parts = (date_str or "").strip().split("-")
    if len(parts) != 3 or not all(p.isascii() and p.isdigit() for p in parts):
        raise MalformedDateError(f"date must be YYYY-MM-DD, got '{date_str}'")
    year, month, day = (int(p) for p in parts)
    return year, month, day


def _representable(ms: int, value: str) -> int:
    try:
        ms_to_iso(ms)
    except (OverflowError, ValueError) as exc:
        raise MalformedDateError(f"'{value}' is outside the supported date range") from exc
    return ms


def date_to_utc_range(date_str: str, offset_hours: float) -> FetchRange:
    year, month, day = _parse_local_date(date_str)
    local_tz = timezone(timedelta(hours=offset_hours))
    try:
        day_start = datetime(year, month, day, 0, 0, 0, tzinfo=local_tz)
        day_end = datetime(year, month, day, 23, 59, 59, tzinfo=local_tz)
        start_ms = int(day_start.timestamp() * 1000)
        end_ms = int(day_end.timestamp() * 1000)
    except (OverflowError, ValueError) as exc:
        raise MalformedDateError(f"invalid calendar date '{date_str}': {exc}") from exc
    return FetchRange(
        start_utc_ms=_representable(start_ms, date_str),
        end_utc_ms=_representable(end_ms, date_str),
    )


def resolve_date_range(start_date: str, end_date: Optional[str], offset_hours: float) -> FetchRange:
    start = date_to_utc_range(start_date, offset_hours)
    end = date_to_utc_range(end_date, offset_hours) if end_date else start
    return FetchRange(start_utc_ms=start.start_utc_ms, end_utc_ms=end.end_utc_ms)


def _parse_ms(value: str, name: str) -> int:
    try:
        ms = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise MalformedDateError(f"{name} must be an integer millisecond timestamp, got '{value}'") from exc
    return _representable(ms, value)


def resolve_timestamp_range(start_ts: str, end_ts: Optional[str]) -> FetchRange:
    start = _parse_ms(start_ts, "start_ts")
    end = _parse_ms(end_ts, "end_ts") if end_ts else int(time.time() * 1000)
    return FetchRange(start_utc_ms=start, end_utc_ms=end)


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ms_to_iso(ms: int) -> str:
    dt = _EPOCH + timedelta(milliseconds=ms)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
