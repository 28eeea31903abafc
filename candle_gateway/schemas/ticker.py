from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class TickerSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    exchange: str
    market: str
    symbol: str
    last_price: float
    open_price: float
    high_price: float
    low_price: float
    volume: float
    quote_volume: float
    price_change_percent: float
    timestamp: str
