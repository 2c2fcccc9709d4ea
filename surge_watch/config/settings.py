"""
SURGE WATCH — Central Configuration
All settings are loaded from environment variables with sensible defaults.
Values are read once at startup and never re-read.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional


class MonitorSettings(BaseSettings):
    """Detection thresholds and poll cadence."""
    volume_threshold: float = Field(default=2.0)  # current / average volume
    min_price_change: float = Field(default=5.0)  # percentage points
    min_quote_volume: float = Field(default=100000.0)  # USDT
    baseline_retention_seconds: int = Field(default=3600)
    poll_interval_minutes: int = Field(default=5)
    poll_offset_seconds: int = Field(default=3)
    sample_size: int = Field(default=3)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class DataSourceSettings(BaseSettings):
    """Binance futures endpoint and request limits."""
    binance_futures_url: str = Field(default="https://fapi.binance.com")
    quote_asset: str = Field(default="USDT")
    kline_interval: str = Field(default="5m")
    history_candles: int = Field(default=6)  # 6 x 5m = 30 minutes
    request_timeout_seconds: float = Field(default=10.0)
    max_concurrent_requests: int = Field(default=10)
    exchange_info_ttl_seconds: int = Field(default=3600)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class ProxySettings(BaseSettings):
    """Optional outbound proxy for the Telegram transport."""
    use: bool = Field(default=False)
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=7890)

    model_config = SettingsConfigDict(env_file=".env", env_prefix="PROXY_", extra="ignore")

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"


class TelegramSettings(BaseSettings):
    """Telegram bot configuration."""
    bot_token: str = Field(default="")
    chat_id: str = Field(default="")

    model_config = SettingsConfigDict(env_file=".env", env_prefix="TELEGRAM_", extra="ignore")


class AppSettings(BaseSettings):
    """Top-level application settings."""
    app_name: str = "SURGE WATCH"
    version: str = "1.0.0"
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    auth_token: str = Field(default="")
    run_scheduler: bool = Field(default=True)

    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    data: DataSourceSettings = Field(default_factory=DataSourceSettings)
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Singleton
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings
