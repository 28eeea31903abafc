from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from candle_gateway.errors import UnsupportedIntervalError

_MINUTE_MS = 60 * 1000
_HOUR_MS = 60 * _MINUTE_MS
_DAY_MS = 24 * _HOUR_MS


@dataclass(frozen=True)
class IntervalSpec:
    code: str
    ms: int


INTERVAL_MS: Mapping[str, int] = MappingProxyType(
    {
        "1m": _MINUTE_MS,
        "3m": 3 * _MINUTE_MS,
        "5m": 5 * _MINUTE_MS,
        "15m": 15 * _MINUTE_MS,
        "30m": 30 * _MINUTE_MS,
        "1h": _HOUR_MS,
        "2h": 2 * _HOUR_MS,
        "4h": 4 * _HOUR_MS,
        "6h": 6 * _HOUR_MS,
        "8h": 8 * _HOUR_MS,
        "12h": 12 * _HOUR_MS,
        "1d": _DAY_MS,
        "1w": 7 * _DAY_MS,
    }
)


def resolve_interval(code: str) -> IntervalSpec:
    cleaned = (code or "").strip()
    ms = INTERVAL_MS.get(cleaned)
    if ms is None:
        raise UnsupportedIntervalError(
            f"Unsupported interval '{code}'. Supported values: {', '.join(INTERVAL_MS.keys())}"
        )
    return IntervalSpec(code=cleaned, ms=ms)
