import pytest

from candle_gateway.errors import UpstreamFetchError
from candle_gateway.exchanges.binance_adapter import BinanceAdapter
from candle_gateway.exchanges.bybit_adapter import BybitAdapter
from candle_gateway.schemas.candle import Candle
from candle_gateway.services.normalizer import (
    candles_to_csv,
    csv_to_candles,
    dedupe_and_sort,
    normalize,
    row_to_candle,
)
from candle_gateway.utils.exchange_mapper import Market

from tests.conftest import binance_row

T = 1_759_262_400_000


def test_later_occurrence_wins_and_output_ascends():
    rows = [
        binance_row(T + 120_000),
        binance_row(T, close="1.1"),
        binance_row(T + 60_000),
        binance_row(T, close="1.2"),
    ]
    candles = normalize(rows, BinanceAdapter(), Market.SPOT)

    assert [c.open_time for c in candles] == [T, T + 60_000, T + 120_000]
    assert candles[0].close == 1.2


def test_dedupe_and_sort_is_idempotent():
    rows = [binance_row(T + 60_000), binance_row(T), binance_row(T + 60_000, close="3")]
    once = dedupe_and_sort(rows)
    assert dedupe_and_sort(once) == once

    candles = normalize(rows, BinanceAdapter(), Market.SPOT)
    assert dedupe_and_sort(candles, lambda c: c.open_time) == candles


def test_binance_row_maps_extended_fields():
    candle = row_to_candle(binance_row(T), BinanceAdapter().fields_for(Market.SPOT))
    assert candle.open == 1.0
    assert candle.high == 2.0
    assert candle.low == 0.5
    assert candle.volume == 10.0
    assert candle.close_time == T + 59_999
    assert candle.quote_volume == 15.0
    assert candle.trade_count == 7
    assert candle.taker_buy_base_volume == 4.0
    assert candle.taker_buy_quote_volume == 6.0


def test_missing_optional_fields_are_omitted_or_zero():
    fields = BinanceAdapter().fields_for(Market.SPOT)
    short = row_to_candle([T, "1", "2", "0.5", "1.5", "10"], fields)
    assert short.close_time is None
    assert short.trade_count is None

    blank = row_to_candle([T, "1", "2", "0.5", "1.5", "10", T + 59_999, "", 3, None, "x"], fields)
    assert blank.quote_volume == 0.0
    assert blank.taker_buy_base_volume == 0.0
    assert blank.taker_buy_quote_volume == 0.0


def test_missing_required_field_is_an_upstream_error():
    with pytest.raises(UpstreamFetchError):
        row_to_candle([T, "1", "2", "0.5"], BybitAdapter().fields_for(Market.SPOT), "bybit")


def test_candle_json_uses_camel_case():
    payload = Candle(open_time=T, open=1, high=2, low=0.5, close=1.5, volume=10).model_dump(by_alias=True, exclude_none=True)
    assert payload == {"openTime": T, "open": 1.0, "high": 2.0, "low": 0.5, "close": 1.5, "volume": 10.0}


def test_csv_layout():
    candles = normalize([binance_row(T)], BinanceAdapter(), Market.SPOT)
    lines = candles_to_csv(candles).splitlines()

    assert lines[0] == (
        "Open time (UTC),Open,High,Low,Close,Volume,Close time (UTC),"
        "Quote asset volume,Trades,Taker buy base,Taker buy quote"
    )
    assert lines[1] == "2025-09-30T20:00:00.000Z,1.0,2.0,0.5,1.5,10.0,2025-09-30T20:00:59.999Z,15.0,7,4.0,6.0"


def test_csv_round_trip():
    rows = [
        [T, "43000.01", "43010.5", "42990.12345678", "43005.99", "12.3456789"],
        [T + 60_000, "43005.99", "43020", "43001", "43019.1", "0.00012"],
    ]
    candles = normalize(rows, BybitAdapter(), Market.SPOT)
    parsed = csv_to_candles(candles_to_csv(candles))

    for original, restored in zip(candles, parsed):
        assert restored.open_time == original.open_time
        assert (restored.open, restored.high, restored.low, restored.close, restored.volume) == (
            original.open,
            original.high,
            original.low,
            original.close,
            original.volume,
        )
    assert len(parsed) == 2


def test_csv_of_nothing_is_header_only():
    assert csv_to_candles(candles_to_csv([])) == []
