from __future__ import annotations

from types import MappingProxyType
from typing import Any

from candle_gateway.errors import UpstreamFetchError
from candle_gateway.exchanges.base import OHLCV_FIELDS, ExchangeAdapter, RowField
from candle_gateway.utils.date_range import ms_to_iso
from candle_gateway.utils.exchange_mapper import Market
from candle_gateway.utils.validators import to_native_float, to_native_int

_KLINE_URL = "https://api.bybit.com/v5/market/kline"
_TICKER_URL = "https://api.bybit.com/v5/market/tickers"

_CATEGORY = MappingProxyType({Market.SPOT: "spot", Market.FUTURES: "linear"})


class BybitAdapter(ExchangeAdapter):
    name = "bybit"
    page_size = 1000
    kline_endpoints = MappingProxyType({Market.SPOT: _KLINE_URL, Market.FUTURES: _KLINE_URL})
    ticker_endpoints = MappingProxyType({Market.SPOT: _TICKER_URL, Market.FUTURES: _TICKER_URL})
    interval_tokens = MappingProxyType(
        {
            "1m": "1",
            "3m": "3",
            "5m": "5",
            "15m": "15",
            "30m": "30",
            "1h": "60",
            "2h": "120",
            "4h": "240",
            "6h": "360",
            "12h": "720",
            "1d": "D",
            "1w": "W",
        }
    )
    # [startTime, open, high, low, close, volume, turnover]
    row_fields = OHLCV_FIELDS + (RowField("quote_volume", 6, float),)

    def _result(self, payload: Any) -> dict[str, Any]:
        if not isinstance(payload, dict) or payload.get("retCode") != 0:
            raise UpstreamFetchError(self.name, payload)
        return payload.get("result") or {}

    def kline_params(self, provider_symbol: str, market: Market, token: str, start_ms: int, end_ms: int) -> dict[str, Any]:
        return {
            "category": _CATEGORY[market],
            "symbol": provider_symbol,
            "interval": token,
            "start": start_ms,
            "end": end_ms,
            "limit": self.page_size,
        }

    def extract_rows(self, payload: Any) -> list[list[Any]]:
        rows = list(self._result(payload).get("list") or [])
        # Bybit returns newest first
        rows.sort(key=self.open_time)
        return rows

    def fetch_ticker(self, symbol: str, market: Market) -> dict[str, Any]:
        payload = self._get_json(
            self.ticker_url(market),
            {"category": _CATEGORY[market], "symbol": self.provider_symbol(symbol, market)},
        )
        items = self._result(payload).get("list") or []
        if not items:
            raise UpstreamFetchError(self.name, payload)
        item = items[0]
        return {
            "last_price": to_native_float(item.get("lastPrice")),
            "open_price": to_native_float(item.get("prevPrice24h")),
            "high_price": to_native_float(item.get("highPrice24h")),
            "low_price": to_native_float(item.get("lowPrice24h")),
            "volume": to_native_float(item.get("volume24h")),
            "quote_volume": to_native_float(item.get("turnover24h")),
            "price_change_percent": to_native_float(item.get("price24hPcnt")) * 100,
            "timestamp": ms_to_iso(to_native_int(payload.get("time"))),
        }
