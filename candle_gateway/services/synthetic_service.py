"""
Random-walk candles served only when explicitly enabled and the exchange fails.

Every candle produced here carries ``source="synthetic"``.
"""
from __future__ import annotations

import logging
import random
from typing import Optional

from candle_gateway.config.settings import settings
from candle_gateway.errors import RangeTooLargeError
from candle_gateway.schemas.candle import Candle
from candle_gateway.utils.date_range import FetchRange
from candle_gateway.utils.intervals import IntervalSpec

logger = logging.getLogger(__name__)

SYNTHETIC_SOURCE = "synthetic"


class SyntheticCandleService:
    def __init__(self, rng: Optional[random.Random] = None, max_candles: Optional[int] = None):
        self.rng = rng or random.Random()
        self.max_candles = max_candles or settings.max_pages_per_request * 1000

    def generate(self, fetch_range: FetchRange, interval: IntervalSpec, start_price: Optional[float] = None) -> list[Candle]:
        if fetch_range.is_empty:
            return []

        # Align to the first bar boundary inside the range
        first = -(-fetch_range.start_utc_ms // interval.ms) * interval.ms
        count = 0 if first > fetch_range.end_utc_ms else (fetch_range.end_utc_ms - first) // interval.ms + 1
        if count > self.max_candles:
            raise RangeTooLargeError(f"synthetic range needs {count} candles, limit is {self.max_candles}")

        price = start_price or self.rng.uniform(100, 500)
        candles: list[Candle] = []
        for i in range(count):
            open_time = first + i * interval.ms
            open_price = price
            # Random walk: +/- 0.5% per bar
            close_price = max(open_price * (1 + self.rng.uniform(-0.005, 0.005)), 0.01)
            high = max(open_price, close_price) * (1 + self.rng.uniform(0, 0.002))
            low = min(open_price, close_price) * (1 - self.rng.uniform(0, 0.002))
            candles.append(
                Candle(
                    open_time=open_time,
                    open=round(open_price, 2),
                    high=round(high, 2),
                    low=round(low, 2),
                    close=round(close_price, 2),
                    volume=round(self.rng.uniform(1, 100), 4),
                    close_time=open_time + interval.ms - 1,
                    source=SYNTHETIC_SOURCE,
                )
            )
            price = close_price

        logger.warning("synthetic_candles_generated", extra={"interval": interval.code, "candles": len(candles)})
        return candles
