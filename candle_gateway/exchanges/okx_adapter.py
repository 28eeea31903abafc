from __future__ import annotations

from types import MappingProxyType
from typing import Any, Sequence

from candle_gateway.errors import UpstreamFetchError
from candle_gateway.exchanges.base import ExchangeAdapter, RowField
from candle_gateway.utils.date_range import ms_to_iso
from candle_gateway.utils.exchange_mapper import Market, to_dashed_symbol
from candle_gateway.utils.validators import to_native_float, to_native_int

_KLINE_URL = "https://www.okx.com/api/v5/market/history-candles"
_TICKER_URL = "https://www.okx.com/api/v5/market/ticker"

# [ts, o, h, l, c, vol, volCcy, volCcyQuote, confirm]
_SPOT_FIELDS: tuple[RowField, ...] = (
    RowField("open_time", 0, int, required=True),
    RowField("open", 1, float, required=True),
    RowField("high", 2, float, required=True),
    RowField("low", 3, float, required=True),
    RowField("close", 4, float, required=True),
    RowField("volume", 5, float, required=True),
    RowField("quote_volume", 7, float),
)

# Swap rows count contracts in ``vol``; base-asset volume is ``volCcy``
_SWAP_FIELDS: tuple[RowField, ...] = _SPOT_FIELDS[:5] + (
    RowField("volume", 6, float, required=True),
    RowField("quote_volume", 7, float),
)


class OkxAdapter(ExchangeAdapter):
    name = "okx"
    page_size = 100
    kline_endpoints = MappingProxyType({Market.SPOT: _KLINE_URL, Market.FUTURES: _KLINE_URL})
    ticker_endpoints = MappingProxyType({Market.SPOT: _TICKER_URL, Market.FUTURES: _TICKER_URL})
    interval_tokens = MappingProxyType(
        {
            "1m": "1m",
            "3m": "3m",
            "5m": "5m",
            "15m": "15m",
            "30m": "30m",
            "1h": "1H",
            "2h": "2H",
            "4h": "4H",
            "6h": "6Hutc",
            "12h": "12Hutc",
            "1d": "1Dutc",
            "1w": "1Wutc",
        }
    )
    row_fields = _SPOT_FIELDS

    def provider_symbol(self, symbol: str, market: Market) -> str:
        return to_dashed_symbol(symbol, market)

    def fields_for(self, market: Market) -> Sequence[RowField]:
        return _SWAP_FIELDS if market == Market.FUTURES else _SPOT_FIELDS

    def _data(self, payload: Any) -> list[Any]:
        if not isinstance(payload, dict) or str(payload.get("code")) != "0":
            raise UpstreamFetchError(self.name, payload)
        return list(payload.get("data") or [])

    def kline_params(self, provider_symbol: str, market: Market, token: str, start_ms: int, end_ms: int) -> dict[str, Any]:
        # ``after``/``before`` are exclusive bounds on the row timestamp
        return {
            "instId": provider_symbol,
            "bar": token,
            "after": end_ms + 1,
            "before": start_ms - 1,
            "limit": self.page_size,
        }

    def extract_rows(self, payload: Any) -> list[list[Any]]:
        rows = self._data(payload)
        rows.sort(key=self.open_time)
        return rows

    def fetch_ticker(self, symbol: str, market: Market) -> dict[str, Any]:
        payload = self._get_json(self.ticker_url(market), {"instId": self.provider_symbol(symbol, market)})
        items = self._data(payload)
        if not items:
            raise UpstreamFetchError(self.name, payload)
        item = items[0]
        last = to_native_float(item.get("last"))
        open_24h = to_native_float(item.get("open24h"))
        change = ((last - open_24h) / open_24h * 100) if open_24h else 0.0
        if market == Market.FUTURES:
            volume, quote_volume = to_native_float(item.get("volCcy24h")), last * to_native_float(item.get("volCcy24h"))
        else:
            volume, quote_volume = to_native_float(item.get("vol24h")), to_native_float(item.get("volCcy24h"))
        return {
            "last_price": last,
            "open_price": open_24h,
            "high_price": to_native_float(item.get("high24h")),
            "low_price": to_native_float(item.get("low24h")),
            "volume": volume,
            "quote_volume": quote_volume,
            "price_change_percent": round(change, 4),
            "timestamp": ms_to_iso(to_native_int(item.get("ts"))),
        }
