from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_native_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        casted = float(value)
        if casted != casted:
            return default
        return casted
    except (TypeError, ValueError):
        return default


def to_native_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


def normalize_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    else:
        iso = str(value).replace("Z", "+00:00")
        dt = datetime.fromisoformat(iso)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso_to_ms(value: Any) -> int:
    delta = normalize_timestamp(value) - _EPOCH
    return delta // timedelta(milliseconds=1)
