from enum import Enum


class Exchange(str, Enum):
    BINANCE = "binance"
    BYBIT = "bybit"
    OKX = "okx"


class Market(str, Enum):
    SPOT = "spot"
    FUTURES = "futures"


_QUOTE_ASSET = "USDT"

_KNOWN_BASES = (
    ("BTC", "BTCUSDT"),
    ("ETH", "ETHUSDT"),
)


def to_exchange_symbol(instrument_name: str) -> str:
    """Map a loose instrument name (``BTC``, ``btc-perp``, ``SOL``) to a USDT pair."""
    upper = (instrument_name or "").strip().upper()
    for needle, pair in _KNOWN_BASES:
        if needle in upper:
            return pair
    return upper if upper.endswith(_QUOTE_ASSET) else f"{upper}{_QUOTE_ASSET}"


def to_dashed_symbol(symbol: str, market: Market) -> str:
    """``BTCUSDT`` -> ``BTC-USDT`` (spot) or ``BTC-USDT-SWAP`` (futures)."""
    upper = symbol.upper()
    if "-" in upper:
        return upper
    if upper.endswith(_QUOTE_ASSET) and len(upper) > len(_QUOTE_ASSET):
        base = upper[: -len(_QUOTE_ASSET)]
        dashed = f"{base}-{_QUOTE_ASSET}"
    else:
        dashed = upper
    if market == Market.FUTURES:
        return f"{dashed}-SWAP"
    return dashed
