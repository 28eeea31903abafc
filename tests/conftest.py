import pytest
from fastapi.testclient import TestClient

from candle_gateway.api.routes import create_app
from candle_gateway.exchanges.registry import ADAPTERS
from candle_gateway.utils.exchange_mapper import Exchange

MINUTE_MS = 60_000


def binance_row(open_time: int, interval_ms: int = MINUTE_MS, close: str = "1.5") -> list:
    return [
        open_time,
        "1.00000000",
        "2.00000000",
        "0.50000000",
        close,
        "10.00000000",
        open_time + interval_ms - 1,
        "15.00000000",
        7,
        "4.00000000",
        "6.00000000",
        "0",
    ]


@pytest.fixture
def client():
    return TestClient(create_app())


@pytest.fixture
def binance():
    return ADAPTERS[Exchange.BINANCE]
