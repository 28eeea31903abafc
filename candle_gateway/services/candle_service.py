"""
Paginated kline collection.

Exchanges cap the number of rows per kline call, so an arbitrary range is
walked with a cursor: each page covers at most ``page_size`` bars starting at
the cursor, and the next cursor is the last returned open time plus one
interval.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from candle_gateway.config.settings import settings
from candle_gateway.errors import RangeTooLargeError, UpstreamFetchError
from candle_gateway.exchanges.base import ExchangeAdapter
from candle_gateway.internal_metrics import MetricsCollector, metrics as default_metrics
from candle_gateway.observability import RequestTimer
from candle_gateway.schemas.candle import Candle
from candle_gateway.services.normalizer import normalize
from candle_gateway.utils.date_range import FetchRange, ms_to_iso
from candle_gateway.utils.exchange_mapper import Market
from candle_gateway.utils.intervals import IntervalSpec

logger = logging.getLogger(__name__)


def estimate_pages(fetch_range: FetchRange, interval: IntervalSpec, page_size: int) -> int:
    if fetch_range.is_empty:
        return 0
    span = fetch_range.end_utc_ms - fetch_range.start_utc_ms + 1
    per_page = interval.ms * page_size
    return -(-span // per_page)


class CandleCollector:
    def __init__(self, metrics: Optional[MetricsCollector] = None, max_pages: Optional[int] = None):
        self.metrics = metrics or default_metrics
        self.max_pages = max_pages or settings.max_pages_per_request

    def collect(
        self,
        adapter: ExchangeAdapter,
        symbol: str,
        market: Market,
        fetch_range: FetchRange,
        interval: IntervalSpec,
    ) -> list[list[Any]]:
        """Return raw upstream rows covering ``fetch_range``, page by page in order."""
        token = adapter.interval_token(interval)
        if fetch_range.is_empty:
            return []

        pages = estimate_pages(fetch_range, interval, adapter.page_size)
        if pages > self.max_pages:
            raise RangeTooLargeError(
                f"range needs {pages} upstream calls at {interval.code}, limit is {self.max_pages}; "
                "narrow the range or use a coarser resolution"
            )

        rows: list[list[Any]] = []
        cursor = fetch_range.start_utc_ms
        end = fetch_range.end_utc_ms
        while cursor <= end:
            chunk_end = min(end, cursor + interval.ms * (adapter.page_size - 1))
            page = self._fetch_page(adapter, symbol, market, token, cursor, chunk_end)
            if not page:
                break

            rows.extend(page)
            next_cursor = adapter.open_time(page[-1]) + interval.ms
            if next_cursor <= cursor:
                logger.warning(
                    "Upstream returned a non-advancing page, stopping",
                    extra={"upstream": adapter.name, "symbol": symbol, "cursor": cursor, "next_cursor": next_cursor},
                )
                break

            cursor = next_cursor
            if len(page) < adapter.page_size:
                break

        return rows

    def _fetch_page(
        self,
        adapter: ExchangeAdapter,
        symbol: str,
        market: Market,
        token: str,
        start_ms: int,
        end_ms: int,
    ) -> list[list[Any]]:
        timer = RequestTimer()
        try:
            page = adapter.fetch_klines(symbol, market, token, start_ms, end_ms)
        except UpstreamFetchError:
            self.metrics.record_page(adapter.name, success=False, latency_ms=timer.elapsed_ms())
            raise

        latency_ms = timer.elapsed_ms()
        self.metrics.record_page(adapter.name, success=True, latency_ms=latency_ms, rows=len(page))
        logger.info(
            "upstream_page_fetched",
            extra={
                "upstream": adapter.name,
                "market": market.value,
                "symbol": symbol,
                "start": ms_to_iso(start_ms),
                "end": ms_to_iso(end_ms),
                "rows": len(page),
                "latency_ms": round(latency_ms, 2),
            },
        )
        return page


class CandleService:
    def __init__(self, collector: Optional[CandleCollector] = None):
        self.collector = collector or CandleCollector()

    def get_candles(
        self,
        adapter: ExchangeAdapter,
        symbol: str,
        market: Market,
        fetch_range: FetchRange,
        interval: IntervalSpec,
    ) -> list[Candle]:
        rows = self.collector.collect(adapter, symbol, market, fetch_range, interval)
        candles = normalize(rows, adapter, market)
        logger.info(
            "candles_normalized",
            extra={
                "upstream": adapter.name,
                "symbol": symbol,
                "interval": interval.code,
                "raw_rows": len(rows),
                "candles": len(candles),
            },
        )
        return candles
