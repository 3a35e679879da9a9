"""Delivery zone, pricing and pickup schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from storefront.services.checkout_service import PickupLocationInfo
from storefront.services.surge_pricing_service import PricingResult
from storefront.services.zone_service import (
    DeliveryZoneInfo,
    ResolutionStatus,
    ZoneMatch,
    ZoneResolution,
    format_delivery_window,
    restriction_labels,
)


class DeliveryZoneRead(BaseModel):
    """Public view of a delivery zone."""

    id: int
    name: str
    description: str
    postal_patterns: list[str]
    delivery_fee: Decimal
    min_order_amount: Decimal
    min_delivery_minutes: int
    max_delivery_minutes: int
    delivery_window: str
    priority: int
    restrictions: list[str]

    @classmethod
    def from_zone(cls, zone: DeliveryZoneInfo) -> "DeliveryZoneRead":
        return cls(
            id=zone.id,
            name=zone.name,
            description=zone.description,
            postal_patterns=list(zone.postal_patterns),
            delivery_fee=zone.delivery_fee,
            min_order_amount=zone.min_order_amount,
            min_delivery_minutes=zone.min_delivery_minutes,
            max_delivery_minutes=zone.max_delivery_minutes,
            delivery_window=format_delivery_window(
                zone.min_delivery_minutes, zone.max_delivery_minutes
            ),
            priority=zone.priority,
            restrictions=restriction_labels(zone),
        )


class ZoneMatchRead(BaseModel):
    zone: DeliveryZoneRead
    is_eligible: bool
    shortfall: Decimal

    @classmethod
    def from_match(cls, match: ZoneMatch) -> "ZoneMatchRead":
        return cls(
            zone=DeliveryZoneRead.from_zone(match.zone),
            is_eligible=match.is_eligible,
            shortfall=match.shortfall,
        )


class ZoneResolutionRead(BaseModel):
    """Zone resolution outcome for a postal code."""

    postal_code: str
    order_amount: Decimal
    status: ResolutionStatus
    is_serviceable: bool
    message: str
    matched_zones: list[ZoneMatchRead]
    alternative_zones: list[DeliveryZoneRead]
    best_zone_id: int | None = None

    @classmethod
    def from_resolution(cls, resolution: ZoneResolution) -> "ZoneResolutionRead":
        best = resolution.best_zone
        return cls(
            postal_code=resolution.postal_code,
            order_amount=resolution.order_amount,
            status=resolution.status,
            is_serviceable=resolution.is_serviceable,
            message=resolution.message,
            matched_zones=[
                ZoneMatchRead.from_match(match) for match in resolution.matched_zones
            ],
            alternative_zones=[
                DeliveryZoneRead.from_zone(zone) for zone in resolution.alternative_zones
            ],
            best_zone_id=best.zone.id if best else None,
        )


class PricingResultRead(BaseModel):
    """Surge price snapshot."""

    zone_id: int
    base_price: Decimal
    multiplier: Decimal
    surge_price: Decimal
    is_surge_active: bool
    surge_level: str
    computed_at: datetime
    surge_reasons: list[str] = []
    estimated_duration: str | None = None
    next_price_check: datetime | None = None

    @classmethod
    def from_result(cls, result: PricingResult) -> "PricingResultRead":
        return cls(
            zone_id=result.zone_id,
            base_price=result.base_price,
            multiplier=result.multiplier,
            surge_price=result.surge_price,
            is_surge_active=result.is_surge_active,
            surge_level=result.surge_level,
            computed_at=result.computed_at,
            surge_reasons=list(result.surge_reasons),
            estimated_duration=result.estimated_duration,
            next_price_check=result.next_price_check,
        )


class PickupLocationRead(BaseModel):
    id: int
    name: str
    address: str
    postal_code: str
    hours: str | None = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_location(cls, location: PickupLocationInfo) -> "PickupLocationRead":
        return cls.model_validate(location)
