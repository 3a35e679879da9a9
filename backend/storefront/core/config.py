"""Application configuration via pydantic settings."""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from typing import Any

from pydantic import Field
from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed application configuration."""

    app_env: str = Field("local", alias="APP_ENV")
    app_name: str = "Marketplace Storefront Checkout API"
    api_v1_prefix: str = "/api/v1"
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    database_url: str = Field(
        "sqlite+aiosqlite:///./storefront.db", alias="DATABASE_URL"
    )
    sync_database_url: str | None = Field(default=None, alias="SYNC_DATABASE_URL")

    tax_rate: Decimal = Field(Decimal("0.08"), alias="TAX_RATE")
    alternative_zone_limit: int = Field(3, alias="ALTERNATIVE_ZONE_LIMIT")

    surge_min_multiplier: Decimal = Field(Decimal("1.0"), alias="SURGE_MIN_MULTIPLIER")
    surge_max_multiplier: Decimal = Field(Decimal("2.5"), alias="SURGE_MAX_MULTIPLIER")
    surge_ttl_seconds: float = Field(45.0, alias="SURGE_TTL_SECONDS")
    surge_active_threshold: Decimal = Field(
        Decimal("1.05"), alias="SURGE_ACTIVE_THRESHOLD"
    )
    surge_signal_half_life_seconds: float = Field(
        300.0, alias="SURGE_SIGNAL_HALF_LIFE_SECONDS"
    )
    surge_refresh_interval_seconds: float = Field(
        60.0, alias="SURGE_REFRESH_INTERVAL_SECONDS"
    )
    surge_time_of_day_pricing: bool = Field(True, alias="SURGE_TIME_OF_DAY_PRICING")
    surge_time_zone: str = Field("America/New_York", alias="SURGE_TIME_ZONE")

    demand_service_url: str | None = Field(default=None, alias="DEMAND_SERVICE_URL")
    demand_timeout_seconds: float = Field(2.0, alias="DEMAND_TIMEOUT_SECONDS")
    order_service_url: str | None = Field(default=None, alias="ORDER_SERVICE_URL")
    order_submit_timeout_seconds: float = Field(
        15.0, alias="ORDER_SUBMIT_TIMEOUT_SECONDS"
    )

    cors_allow_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://localhost:8000",
        ],
        alias="CORS_ALLOW_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=False, alias="CORS_ALLOW_CREDENTIALS")
    cors_allowlist: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"], alias="CORS_ALLOWLIST"
    )

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[3] / ".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("cors_allow_origins", "cors_allowlist", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("surge_max_multiplier")
    @classmethod
    def _check_multiplier_bounds(cls, value: Decimal, info: ValidationInfo) -> Decimal:
        minimum = info.data.get("surge_min_multiplier")
        if minimum is not None and value < minimum:
            raise ValueError("SURGE_MAX_MULTIPLIER must not be below SURGE_MIN_MULTIPLIER")
        return value


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()  # type: ignore[call-arg]
