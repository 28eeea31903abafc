import pytest

from candle_gateway.errors import RangeTooLargeError, UpstreamFetchError
from candle_gateway.exchanges.binance_adapter import BinanceAdapter
from candle_gateway.internal_metrics import MetricsCollector
from candle_gateway.services.candle_service import CandleCollector, CandleService, estimate_pages
from candle_gateway.utils.date_range import FetchRange
from candle_gateway.utils.exchange_mapper import Market
from candle_gateway.utils.intervals import resolve_interval

from tests.conftest import MINUTE_MS, binance_row

START = 1_759_262_400_000
ONE_MINUTE = resolve_interval("1m")


class RecordingUpstream:
    """Stand-in for ``_get_json`` that records every call's params."""

    def __init__(self, pages=None, full_pages=False, page_size=1000):
        self.calls = []
        self.pages = list(pages or [])
        self.full_pages = full_pages
        self.page_size = page_size

    def __call__(self, url, params):
        self.calls.append(dict(params))
        if self.full_pages:
            start = params["startTime"]
            return [binance_row(start + i * MINUTE_MS) for i in range(self.page_size)]
        return self.pages.pop(0) if self.pages else []


def _collector():
    return CandleCollector(metrics=MetricsCollector(), max_pages=500)


def test_terminates_when_cursor_passes_end(monkeypatch):
    adapter = BinanceAdapter()
    upstream = RecordingUpstream(full_pages=True)
    monkeypatch.setattr(adapter, "_get_json", upstream)

    # 2880 one-minute bars -> three pages of at most 1000
    fetch_range = FetchRange(START, START + 2880 * MINUTE_MS - 1)
    rows = _collector().collect(adapter, "BTCUSDT", Market.SPOT, fetch_range, ONE_MINUTE)

    assert len(upstream.calls) == 3
    assert [c["startTime"] for c in upstream.calls] == [START, START + 1000 * MINUTE_MS, START + 2000 * MINUTE_MS]
    assert upstream.calls[0]["endTime"] == START + 999 * MINUTE_MS
    assert upstream.calls[-1]["endTime"] == fetch_range.end_utc_ms
    assert len(rows) == 3000


def test_non_advancing_page_stops_without_error(monkeypatch):
    adapter = BinanceAdapter()
    first_page = [binance_row(START + i * MINUTE_MS) for i in range(1000)]
    stale_page = [binance_row(START)]
    upstream = RecordingUpstream(pages=[first_page, stale_page, first_page])
    monkeypatch.setattr(adapter, "_get_json", upstream)

    fetch_range = FetchRange(START, START + 5000 * MINUTE_MS)
    rows = _collector().collect(adapter, "BTCUSDT", Market.SPOT, fetch_range, ONE_MINUTE)

    assert len(upstream.calls) == 2
    assert len(rows) == 1001


def test_short_page_ends_collection(monkeypatch):
    adapter = BinanceAdapter()
    upstream = RecordingUpstream(pages=[[binance_row(START), binance_row(START + MINUTE_MS)]])
    monkeypatch.setattr(adapter, "_get_json", upstream)

    rows = _collector().collect(adapter, "BTCUSDT", Market.SPOT, FetchRange(START, START + 10_000 * MINUTE_MS), ONE_MINUTE)

    assert len(upstream.calls) == 1
    assert len(rows) == 2


def test_empty_page_ends_collection(monkeypatch):
    adapter = BinanceAdapter()
    upstream = RecordingUpstream(pages=[])
    monkeypatch.setattr(adapter, "_get_json", upstream)

    rows = _collector().collect(adapter, "BTCUSDT", Market.SPOT, FetchRange(START, START + MINUTE_MS), ONE_MINUTE)
    assert rows == []
    assert len(upstream.calls) == 1


def test_inverted_range_makes_no_calls(monkeypatch):
    adapter = BinanceAdapter()
    upstream = RecordingUpstream(full_pages=True)
    monkeypatch.setattr(adapter, "_get_json", upstream)

    rows = _collector().collect(adapter, "BTCUSDT", Market.SPOT, FetchRange(START, START - 1), ONE_MINUTE)
    assert rows == []
    assert upstream.calls == []


def test_failure_on_later_page_discards_everything(monkeypatch):
    adapter = BinanceAdapter()
    calls = []

    def flaky(url, params):
        calls.append(params)
        if len(calls) == 2:
            raise UpstreamFetchError("binance", {"code": -1003, "msg": "Too many requests"})
        return [binance_row(params["startTime"] + i * MINUTE_MS) for i in range(1000)]

    monkeypatch.setattr(adapter, "_get_json", flaky)
    metrics = MetricsCollector()
    collector = CandleCollector(metrics=metrics, max_pages=500)

    with pytest.raises(UpstreamFetchError) as exc_info:
        collector.collect(adapter, "BTCUSDT", Market.SPOT, FetchRange(START, START + 3000 * MINUTE_MS), ONE_MINUTE)

    assert exc_info.value.payload["code"] == -1003
    status = metrics.upstream_status()["binance"]
    assert status["successful_pages"] == 1
    assert status["failed_pages"] == 1


def test_page_cap_rejects_before_any_call(monkeypatch):
    adapter = BinanceAdapter()
    upstream = RecordingUpstream(full_pages=True)
    monkeypatch.setattr(adapter, "_get_json", upstream)
    collector = CandleCollector(metrics=MetricsCollector(), max_pages=2)

    with pytest.raises(RangeTooLargeError):
        collector.collect(adapter, "BTCUSDT", Market.SPOT, FetchRange(START, START + 2500 * MINUTE_MS), ONE_MINUTE)
    assert upstream.calls == []


def test_estimate_pages():
    assert estimate_pages(FetchRange(0, 999 * MINUTE_MS), ONE_MINUTE, 1000) == 1
    assert estimate_pages(FetchRange(0, 1000 * MINUTE_MS), ONE_MINUTE, 1000) == 2
    assert estimate_pages(FetchRange(10, 0), ONE_MINUTE, 1000) == 0


def test_service_dedupes_overlapping_pages(monkeypatch):
    adapter = BinanceAdapter()
    first_page = [binance_row(START + i * MINUTE_MS) for i in range(1000)]
    # Second page repeats the last bar of the first page with a settled close
    second_page = [binance_row(START + 999 * MINUTE_MS, close="9.9"), binance_row(START + 1000 * MINUTE_MS)]
    upstream = RecordingUpstream(pages=[first_page, second_page])
    monkeypatch.setattr(adapter, "_get_json", upstream)

    service = CandleService(collector=_collector())
    candles = service.get_candles(adapter, "BTCUSDT", Market.SPOT, FetchRange(START, START + 5000 * MINUTE_MS), ONE_MINUTE)

    assert len(candles) == 1001
    assert candles[999].close == 9.9
    assert [c.open_time for c in candles] == sorted({c.open_time for c in candles})
