"""Balance reconciliation settings configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class ReconciliationSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Token pack top-ups: fixed delay between polls
    TOP_UP_MAX_ATTEMPTS: int = 5
    TOP_UP_DELAY_SECONDS: float = 2.0
    TOP_UP_INITIAL_WAIT_SECONDS: float = 3.0

    # Subscriptions: 1s, 2s, then 4s between polls
    SUBSCRIPTION_MAX_ATTEMPTS: int = 8
    SUBSCRIPTION_INITIAL_WAIT_SECONDS: float = 0.5

    SELF_HEAL_DELAY_SECONDS: float = 0.5


__all__ = ["ReconciliationSettings"]
