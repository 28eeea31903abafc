from __future__ import annotations

from types import MappingProxyType
from typing import Any

from candle_gateway.config.settings import settings
from candle_gateway.errors import UpstreamFetchError
from candle_gateway.exchanges.base import OHLCV_FIELDS, ExchangeAdapter, RowField
from candle_gateway.utils.date_range import ms_to_iso
from candle_gateway.utils.exchange_mapper import Market
from candle_gateway.utils.validators import to_native_float, to_native_int


class BinanceAdapter(ExchangeAdapter):
    name = "binance"
    page_size = 1000
    kline_endpoints = MappingProxyType(
        {
            Market.SPOT: "https://api.binance.com/api/v3/klines",
            Market.FUTURES: "https://fapi.binance.com/fapi/v1/klines",
        }
    )
    ticker_endpoints = MappingProxyType(
        {
            Market.SPOT: "https://api.binance.com/api/v3/ticker/24hr",
            Market.FUTURES: "https://fapi.binance.com/fapi/v1/ticker/24hr",
        }
    )
    # Binance uses the canonical interval codes on the wire
    interval_tokens = MappingProxyType(
        {code: code for code in ("1m", "3m", "5m", "15m", "30m", "1h", "2h", "4h", "6h", "8h", "12h", "1d", "1w")}
    )
    row_fields = OHLCV_FIELDS + (
        RowField("close_time", 6, int),
        RowField("quote_volume", 7, float),
        RowField("trade_count", 8, int),
        RowField("taker_buy_base_volume", 9, float),
        RowField("taker_buy_quote_volume", 10, float),
    )

    def headers(self) -> dict[str, str]:
        headers = super().headers()
        if settings.binance_api_key:
            headers["X-MBX-APIKEY"] = settings.binance_api_key
        return headers

    def kline_params(self, provider_symbol: str, market: Market, token: str, start_ms: int, end_ms: int) -> dict[str, Any]:
        return {
            "symbol": provider_symbol,
            "interval": token,
            "startTime": start_ms,
            "endTime": end_ms,
            "limit": self.page_size,
        }

    def extract_rows(self, payload: Any) -> list[list[Any]]:
        if isinstance(payload, dict):
            # {"code": -1121, "msg": "Invalid symbol."}
            raise UpstreamFetchError(self.name, payload)
        return list(payload or [])

    def fetch_ticker(self, symbol: str, market: Market) -> dict[str, Any]:
        payload = self._get_json(self.ticker_url(market), {"symbol": self.provider_symbol(symbol, market)})
        if not isinstance(payload, dict) or "lastPrice" not in payload:
            raise UpstreamFetchError(self.name, payload)
        return {
            "last_price": to_native_float(payload.get("lastPrice")),
            "open_price": to_native_float(payload.get("openPrice")),
            "high_price": to_native_float(payload.get("highPrice")),
            "low_price": to_native_float(payload.get("lowPrice")),
            "volume": to_native_float(payload.get("volume")),
            "quote_volume": to_native_float(payload.get("quoteVolume")),
            "price_change_percent": to_native_float(payload.get("priceChangePercent")),
            "timestamp": ms_to_iso(to_native_int(payload.get("closeTime"))),
        }
