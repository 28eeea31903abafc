from __future__ import annotations

import logging
from typing import Any

from candle_gateway.exchanges.base import ExchangeAdapter
from candle_gateway.utils.exchange_mapper import Market

logger = logging.getLogger(__name__)


class TickerService:
    def get_ticker(self, adapter: ExchangeAdapter, symbol: str, market: Market) -> dict[str, Any]:
        data = adapter.fetch_ticker(symbol, market)
        logger.info("ticker_fetched", extra={"upstream": adapter.name, "market": market.value, "symbol": symbol})
        return {"exchange": adapter.name, "market": market.value, "symbol": symbol, **data}
