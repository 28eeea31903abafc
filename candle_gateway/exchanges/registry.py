from types import MappingProxyType
from typing import Mapping

from candle_gateway.exchanges.base import ExchangeAdapter
from candle_gateway.exchanges.binance_adapter import BinanceAdapter
from candle_gateway.exchanges.bybit_adapter import BybitAdapter
from candle_gateway.exchanges.okx_adapter import OkxAdapter
from candle_gateway.utils.exchange_mapper import Exchange

ADAPTERS: Mapping[Exchange, ExchangeAdapter] = MappingProxyType(
    {
        Exchange.BINANCE: BinanceAdapter(),
        Exchange.BYBIT: BybitAdapter(),
        Exchange.OKX: OkxAdapter(),
    }
)


def get_adapter(exchange: Exchange) -> ExchangeAdapter:
    return ADAPTERS[exchange]
