from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Candle Gateway"
    app_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 10000
    log_level: str = "INFO"

    # Calendar dates in requests are local days at this fixed offset
    local_utc_offset_hours: float = 4

    request_timeout_seconds: int = 20
    max_pages_per_request: int = 500
    user_agent: str = "candle-gateway/1.0"

    default_exchange: str = "binance"
    binance_api_key: Optional[str] = None

    synthetic_fallback_enabled: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


settings = Settings()
