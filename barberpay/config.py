"""Application configuration settings."""
from __future__ import annotations

import os
from decimal import Decimal
from functools import lru_cache

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Runtime toggles -----------------------------------------------------
# "dev" | "staging" | "prod"
ENV = os.getenv("BARBERPAY_ENV", "dev").lower()


class Settings(BaseSettings):
    """Environment configuration for the barberpay backend."""

    app_env: str = Field(default=ENV, validation_alias=AliasChoices("APP_ENV", "BARBERPAY_ENV"))
    database_url: str = "sqlite:///barberpay.db"
    LOG_LEVEL: str = "INFO"

    # --- Stripe ----------------------------------------------------------
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_API_VERSION: str = "2023-10-16"
    STRIPE_CURRENCY: str = "gbp"
    STRIPE_TIMEOUT_SECONDS: int = 20
    STRIPE_MAX_NETWORK_RETRIES: int = 2
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300
    STRIPE_CONNECT_COUNTRY: str = "GB"
    FRONTEND_URL: str = "http://localhost:5173"

    # --- Ledger / transfers ------------------------------------------------
    PLATFORM_FEE_PERCENTAGE: Decimal = Decimal("10")
    TRANSFER_CLAIM_TTL_SECONDS: int = 900

    # --- Operator access ---------------------------------------------------
    OPERATOR_API_KEY: str | None = None

    SCHEDULER_ENABLED: bool = False
    ALLOW_DB_CREATE_ALL: bool = False
    CORS_ALLOW_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET", "OPERATOR_API_KEY")
    @classmethod
    def _strip_empty_secret(cls, value: str | None) -> str | None:
        """Normalise empty secrets to ``None`` for easier validation."""

        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @field_validator("PLATFORM_FEE_PERCENTAGE")
    @classmethod
    def _check_fee_range(cls, value: Decimal) -> Decimal:
        if value < 0 or value > 100:
            raise ValueError("PLATFORM_FEE_PERCENTAGE must be between 0 and 100")
        return value

    @property
    def stripe_configured(self) -> bool:
        return bool(self.STRIPE_SECRET_KEY)


class AppInfo(BaseModel):
    name: str = "barberpay-backend"
    version: str = "0.1.0"


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return settings


__all__ = [
    "ENV",
    "Settings",
    "AppInfo",
    "settings",
    "get_settings",
]
