import re
from typing import Optional

from candle_gateway.errors import InvalidParameterError, MissingParameterError, UnsupportedMarketError
from candle_gateway.utils.exchange_mapper import Exchange, Market, to_exchange_symbol

_SYMBOL_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,32}$")


def normalize_symbol(instrument_name: Optional[str], symbol: Optional[str] = None) -> str:
    if symbol and symbol.strip():
        cleaned = symbol.strip().upper()
    elif instrument_name and instrument_name.strip():
        cleaned = to_exchange_symbol(instrument_name)
    else:
        raise MissingParameterError("instrument_name or symbol required")
    if not _SYMBOL_PATTERN.match(cleaned):
        raise InvalidParameterError(f"invalid symbol '{cleaned}'")
    return cleaned


def normalize_exchange(exchange: str) -> Exchange:
    try:
        return Exchange(exchange.strip().lower())
    except ValueError as exc:
        supported = ", ".join(e.value for e in Exchange)
        raise UnsupportedMarketError(f"unsupported exchange '{exchange}'. Supported values: {supported}") from exc


def normalize_market(market: str) -> Market:
    try:
        return Market((market or "").strip().lower())
    except ValueError as exc:
        raise UnsupportedMarketError(f"unsupported market '{market}'. Supported values: spot, futures") from exc
