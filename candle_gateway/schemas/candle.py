from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Candle(BaseModel):
    """One OHLCV bar keyed by its UTC open time in milliseconds."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: Optional[int] = None
    quote_volume: Optional[float] = None
    trade_count: Optional[int] = None
    taker_buy_base_volume: Optional[float] = None
    taker_buy_quote_volume: Optional[float] = None
    source: Optional[str] = None
