"""Pickup location directory endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api import deps
from storefront.schemas.delivery import PickupLocationRead
from storefront.services import catalog_service

router = APIRouter(prefix="/pickup-locations", tags=["pickup"])


@router.get("", response_model=list[PickupLocationRead], summary="List pickup locations")
async def list_pickup_locations(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> list[PickupLocationRead]:
    locations = await catalog_service.list_pickup_locations(session)
    return [PickupLocationRead.from_location(location) for location in locations]
