import random

import pytest

from candle_gateway.errors import RangeTooLargeError
from candle_gateway.services.synthetic_service import SyntheticCandleService
from candle_gateway.utils.date_range import FetchRange
from candle_gateway.utils.intervals import resolve_interval


def test_random_walk_is_well_formed():
    service = SyntheticCandleService(rng=random.Random(42))
    hour = resolve_interval("1h")
    candles = service.generate(FetchRange(1_000, 24 * hour.ms), hour, start_price=100.0)

    # First bar boundary inside the range is 1h
    assert candles[0].open_time == hour.ms
    assert len(candles) == 24
    for prev, cur in zip(candles, candles[1:]):
        assert cur.open_time - prev.open_time == hour.ms
    for c in candles:
        assert c.low <= min(c.open, c.close) <= max(c.open, c.close) <= c.high
        assert c.source == "synthetic"


def test_empty_range():
    assert SyntheticCandleService().generate(FetchRange(10, 0), resolve_interval("1m")) == []


def test_synthetic_range_is_bounded():
    service = SyntheticCandleService(max_candles=10)
    with pytest.raises(RangeTooLargeError):
        service.generate(FetchRange(0, 60 * 60_000), resolve_interval("1m"))
