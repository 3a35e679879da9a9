"""Specialized settings adapters for the pricing and checkout core."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel

from storefront.core.config import get_settings


class SurgeSettings(BaseModel):
    """Slim view of surge-pricing configuration."""

    min_multiplier: Decimal = Decimal("1.0")
    max_multiplier: Decimal = Decimal("2.5")
    ttl_seconds: float = 45.0
    active_threshold: Decimal = Decimal("1.05")
    signal_half_life_seconds: float = 300.0
    time_of_day_pricing: bool = True
    time_zone: str = "UTC"


class CheckoutSettings(BaseModel):
    """Slim view of checkout configuration."""

    tax_rate: Decimal = Decimal("0.08")
    order_submit_timeout_seconds: float = 15.0
    alternative_zone_limit: int = 3


def get_surge_settings() -> SurgeSettings:
    """Return surge-specific configuration."""

    settings = get_settings()
    return SurgeSettings(
        min_multiplier=settings.surge_min_multiplier,
        max_multiplier=settings.surge_max_multiplier,
        ttl_seconds=settings.surge_ttl_seconds,
        active_threshold=settings.surge_active_threshold,
        signal_half_life_seconds=settings.surge_signal_half_life_seconds,
        time_of_day_pricing=settings.surge_time_of_day_pricing,
        time_zone=settings.surge_time_zone,
    )


def get_checkout_settings() -> CheckoutSettings:
    """Return checkout-specific configuration."""

    settings = get_settings()
    return CheckoutSettings(
        tax_rate=settings.tax_rate,
        order_submit_timeout_seconds=settings.order_submit_timeout_seconds,
        alternative_zone_limit=settings.alternative_zone_limit,
    )
