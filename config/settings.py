"""
config/settings.py
Application settings loaded from environment variables.
Uses Pydantic BaseSettings for validation and type safety.
"""

from functools import lru_cache
from typing import Dict, List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    APP_NAME: str = "Flight Deals Ad Booking"
    APP_ENV: str = "development"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # ── Server ───────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # ── Database ─────────────────────────────────────────────
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20
    DATABASE_POOL_TIMEOUT: int = 30

    # ── Admin Auth ───────────────────────────────────────────
    ADMIN_PASSWORD: str = ""
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 720

    # ── Lemon Squeezy ────────────────────────────────────────
    LEMON_SQUEEZY_API_URL: str = "https://api.lemonsqueezy.com/v1"
    LEMON_SQUEEZY_API_KEY: str = ""
    LEMON_SQUEEZY_STORE_ID: str = ""
    LEMON_SQUEEZY_VARIANT_ID_TOP: str = ""
    LEMON_SQUEEZY_VARIANT_ID_BOTTOM: str = ""
    LEMON_SQUEEZY_VARIANT_ID_NEWSLETTER: str = ""
    LEMON_SQUEEZY_WEBHOOK_SECRET: str = ""
    PAYMENT_HTTP_TIMEOUT: float = 15.0

    # ── Notification ping ────────────────────────────────────
    NOTIFY_URL: str = ""
    NOTIFY_NICKNAME: str = ""
    NOTIFY_SECRET_KEY: str = ""

    # ── Frontend ─────────────────────────────────────────────
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # ── Celery ───────────────────────────────────────────────
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # ── Business Config ──────────────────────────────────────
    MAX_CHECKOUT_DAYS: int = 62
    REFUND_RECONCILE_AFTER_MINUTES: int = 15
    REFUND_RECONCILE_INTERVAL_SECONDS: int = 600

    @property
    def allowed_origins_list(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def variant_ids(self) -> Dict[str, str]:
        """Lemon Squeezy variant (price) per ad type."""
        return {
            "top": self.LEMON_SQUEEZY_VARIANT_ID_TOP,
            "bottom": self.LEMON_SQUEEZY_VARIANT_ID_BOTTOM,
            "newsletter": self.LEMON_SQUEEZY_VARIANT_ID_NEWSLETTER,
        }

    def variant_for(self, ad_type: str) -> Optional[str]:
        return self.variant_ids.get(ad_type) or None


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance. Call this everywhere."""
    return Settings()


settings = get_settings()
