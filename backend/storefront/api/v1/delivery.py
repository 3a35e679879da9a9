"""Delivery zone lookup and surge pricing endpoints."""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from storefront.api import deps
from storefront.core.settings import CheckoutSettings
from storefront.schemas.delivery import (
    DeliveryZoneRead,
    PricingResultRead,
    ZoneResolutionRead,
)
from storefront.services.errors import CheckoutError
from storefront.services.surge_pricing_service import SurgePricingEngine
from storefront.services.zone_service import (
    DeliveryZoneInfo,
    ZoneCatalog,
    resolve_zones,
)

router = APIRouter(prefix="/delivery/zones", tags=["delivery"])


def _get_zone_or_404(catalog: ZoneCatalog, zone_id: int) -> DeliveryZoneInfo:
    zone = catalog.get(zone_id)
    if zone is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Delivery zone not found"
        )
    return zone


@router.get("", response_model=list[DeliveryZoneRead], summary="List delivery zones")
async def list_zones(
    catalog: Annotated[ZoneCatalog, Depends(deps.get_zone_catalog)],
) -> list[DeliveryZoneRead]:
    return [DeliveryZoneRead.from_zone(zone) for zone in catalog.active_zones()]


@router.get(
    "/resolve",
    response_model=ZoneResolutionRead,
    summary="Resolve delivery zones for a postal code",
)
async def resolve_postal_code(
    catalog: Annotated[ZoneCatalog, Depends(deps.get_zone_catalog)],
    config: Annotated[CheckoutSettings, Depends(deps.get_checkout_config)],
    postal_code: Annotated[str, Query(max_length=16)],
    order_amount: Annotated[Decimal, Query(ge=0)] = Decimal("0"),
) -> ZoneResolutionRead:
    """Return matched zones with eligibility, or nearby alternatives."""
    try:
        resolution = resolve_zones(
            catalog,
            postal_code,
            order_amount,
            alternative_limit=config.alternative_zone_limit,
        )
    except CheckoutError as exc:
        raise deps.to_http_error(exc) from exc
    return ZoneResolutionRead.from_resolution(resolution)


@router.get(
    "/{zone_id}/price",
    response_model=PricingResultRead,
    summary="Current delivery price for a zone",
)
async def get_zone_price(
    zone_id: int,
    catalog: Annotated[ZoneCatalog, Depends(deps.get_zone_catalog)],
    engine: Annotated[SurgePricingEngine, Depends(deps.get_pricing_engine)],
) -> PricingResultRead:
    zone = _get_zone_or_404(catalog, zone_id)
    return PricingResultRead.from_result(
        await engine.get_price(zone.id, zone.delivery_fee)
    )


@router.post(
    "/{zone_id}/price/refresh",
    response_model=PricingResultRead,
    summary="Recompute a zone's surge multiplier now",
)
async def refresh_zone_price(
    zone_id: int,
    catalog: Annotated[ZoneCatalog, Depends(deps.get_zone_catalog)],
    engine: Annotated[SurgePricingEngine, Depends(deps.get_pricing_engine)],
) -> PricingResultRead:
    zone = _get_zone_or_404(catalog, zone_id)
    return PricingResultRead.from_result(
        await engine.refresh(zone.id, zone.delivery_fee)
    )
