import pytest

from candle_gateway.errors import UnsupportedIntervalError
from candle_gateway.exchanges.bybit_adapter import BybitAdapter
from candle_gateway.exchanges.okx_adapter import OkxAdapter
from candle_gateway.utils.intervals import INTERVAL_MS, resolve_interval


def test_every_interval_has_positive_duration():
    assert all(ms > 0 for ms in INTERVAL_MS.values())
    assert resolve_interval("1h").ms == 3_600_000
    assert resolve_interval("1d").ms == 86_400_000


def test_unknown_interval_is_rejected():
    with pytest.raises(UnsupportedIntervalError):
        resolve_interval("7m")


def test_interval_table_is_read_only():
    with pytest.raises(TypeError):
        INTERVAL_MS["2m"] = 120_000


def test_exchange_tokens():
    assert BybitAdapter().interval_token(resolve_interval("1h")) == "60"
    assert OkxAdapter().interval_token(resolve_interval("1d")) == "1Dutc"
    with pytest.raises(UnsupportedIntervalError):
        BybitAdapter().interval_token(resolve_interval("8h"))
