from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Sequence
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from candle_gateway.config.settings import settings
from candle_gateway.errors import UnsupportedIntervalError, UnsupportedMarketError, UpstreamFetchError
from candle_gateway.utils.exchange_mapper import Market
from candle_gateway.utils.intervals import IntervalSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowField:
    """Where a candle attribute lives in an upstream row, and how to cast it."""

    name: str
    index: int
    kind: type = float
    required: bool = False


# Canonical OHLCV prefix shared by every supported exchange row shape
OHLCV_FIELDS: tuple[RowField, ...] = (
    RowField("open_time", 0, int, required=True),
    RowField("open", 1, float, required=True),
    RowField("high", 2, float, required=True),
    RowField("low", 3, float, required=True),
    RowField("close", 4, float, required=True),
    RowField("volume", 5, float, required=True),
)


class ExchangeAdapter(ABC):
    """
    Declarative description of one exchange's public market-data API.

    Subclasses provide the endpoint tables, the interval-token vocabulary,
    the page-size cap and the row extraction table; the HTTP plumbing and
    error wrapping live here.
    """

    name: str = ""
    page_size: int = 1000
    kline_endpoints: Mapping[Market, str] = MappingProxyType({})
    ticker_endpoints: Mapping[Market, str] = MappingProxyType({})
    interval_tokens: Mapping[str, str] = MappingProxyType({})
    row_fields: Sequence[RowField] = OHLCV_FIELDS

    def __init__(self, timeout_seconds: float | None = None):
        self.timeout_seconds = timeout_seconds or settings.request_timeout_seconds

    def interval_token(self, interval: IntervalSpec) -> str:
        token = self.interval_tokens.get(interval.code)
        if token is None:
            raise UnsupportedIntervalError(f"{self.name} does not support interval '{interval.code}'")
        return token

    def provider_symbol(self, symbol: str, market: Market) -> str:
        return symbol.upper()

    def fields_for(self, market: Market) -> Sequence[RowField]:
        return self.row_fields

    def open_time(self, row: Sequence[Any]) -> int:
        try:
            return int(row[0])
        except (IndexError, TypeError, ValueError) as exc:
            raise UpstreamFetchError(self.name, f"malformed row {row!r}: open_time {exc}") from exc

    def kline_url(self, market: Market) -> str:
        url = self.kline_endpoints.get(market)
        if url is None:
            raise UnsupportedMarketError(f"{self.name} has no {market.value} kline endpoint")
        return url

    def ticker_url(self, market: Market) -> str:
        url = self.ticker_endpoints.get(market)
        if url is None:
            raise UnsupportedMarketError(f"{self.name} has no {market.value} ticker endpoint")
        return url

    def headers(self) -> dict[str, str]:
        return {"User-Agent": settings.user_agent}

    def _get_json(self, url: str, params: dict[str, Any]) -> Any:
        query = urlencode(params)
        request = Request(f"{url}?{query}", headers=self.headers())
        logger.debug("upstream_request", extra={"upstream": self.name, "url": url, "params": params})
        try:
            with urlopen(request, timeout=self.timeout_seconds) as response:
                body = response.read().decode("utf-8")
        except HTTPError as exc:
            raw = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            try:
                payload: Any = json.loads(raw)
            except ValueError:
                payload = raw or f"HTTP {exc.code}"
            raise UpstreamFetchError(self.name, payload) from exc
        except (URLError, TimeoutError, OSError) as exc:
            reason = getattr(exc, "reason", None) or exc
            raise UpstreamFetchError(self.name, str(reason)) from exc

        try:
            return json.loads(body)
        except ValueError as exc:
            raise UpstreamFetchError(self.name, f"invalid JSON response: {body[:200]}") from exc

    def fetch_klines(self, symbol: str, market: Market, token: str, start_ms: int, end_ms: int) -> list[list[Any]]:
        """Fetch one page of rows for ``[start_ms, end_ms]``, oldest first."""
        params = self.kline_params(self.provider_symbol(symbol, market), market, token, start_ms, end_ms)
        payload = self._get_json(self.kline_url(market), params)
        return self.extract_rows(payload)

    @abstractmethod
    def kline_params(self, provider_symbol: str, market: Market, token: str, start_ms: int, end_ms: int) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def extract_rows(self, payload: Any) -> list[list[Any]]:
        raise NotImplementedError

    @abstractmethod
    def fetch_ticker(self, symbol: str, market: Market) -> dict[str, Any]:
        raise NotImplementedError
