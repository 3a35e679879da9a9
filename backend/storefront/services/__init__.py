"""Service layer exports."""
from storefront.services import (
    catalog_service,
    checkout_registry,
    checkout_service,
    surge_pricing_service,
    zone_service,
)

__all__ = [
    "catalog_service",
    "checkout_registry",
    "checkout_service",
    "surge_pricing_service",
    "zone_service",
]
