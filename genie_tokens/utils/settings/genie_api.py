"""Genie API settings configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class GenieAPISettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    GENIE_API_URL: str = "https://api.genie.example.com/prod"
    GENIE_API_TIMEOUT: int = 60
    GENIE_BALANCE_TIMEOUT: int = 15

    # Cached balances are served for this long unless the caller bypasses the cache
    BALANCE_CACHE_TTL_SECONDS: int = 300
    SLOW_BALANCE_REQUEST_SECONDS: float = 5.0


__all__ = ["GenieAPISettings"]
