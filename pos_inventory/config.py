from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ==============================
    # Application
    # ==============================
    APP_NAME: str = "POS Inventory Ledger"
    ENVIRONMENT: str = "local"

    # ==============================
    # Database
    # ==============================
    DATABASE_URL: str = "sqlite:///./pos_inventory.db"

    # ==============================
    # Logging
    # ==============================
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # ==============================
    # Dynamic Pricing
    # ==============================
    DEFAULT_PRICE_INCREASE_STEP: Decimal = Decimal("0.5000")
    DEFAULT_PRICE_DECREASE_STEP: Decimal = Decimal("0.5000")
    PRICE_ACTIVITY_WINDOW_SECONDS: int = 60

    # ==============================
    # Inventory Writes
    # ==============================
    INVENTORY_WRITE_RETRIES: int = 3

    # ==============================
    # Scheduler
    # ==============================
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_INTERVAL_SECONDS: int = 60
    SCHEDULER_POLL_SECONDS: int = 5
    SCHEDULER_STALE_SECONDS: int = 300


@lru_cache
def get_settings() -> Settings:
    """Cached settings loader (once per process)."""
    return Settings()


__all__ = ["Settings", "get_settings"]
