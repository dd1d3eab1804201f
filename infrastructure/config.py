"""Service configuration"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "rental-reservation-engine"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Reservations ─────────────────────────────────────────
    RESERVATION_CODE_PREFIX: str = "EZB"
    RESERVATION_PENDING_TTL_MIN: int = 10

    # ── Payment authorization retry ──────────────────────────
    PAYMENT_MAX_ATTEMPTS: int = 3
    PAYMENT_BASE_DELAY_MS: int = 200
    PAYMENT_MAX_DELAY_MS: int = 2000


@lru_cache()
def get_settings() -> Settings:
    return Settings()
