"""Loading zone and pickup reference data from the database."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models import DeliveryZone, PickupLocation
from storefront.services.checkout_service import PickupLocationInfo
from storefront.services.zone_service import ZoneCatalog, zone_from_record

logger = logging.getLogger(__name__)


async def load_zone_catalog(session: AsyncSession) -> ZoneCatalog:
    """Build an immutable catalog from the active ``delivery_zones`` rows."""

    stmt = (
        select(DeliveryZone)
        .where(DeliveryZone.is_active.is_(True))
        .order_by(DeliveryZone.priority.asc(), DeliveryZone.id.asc())
    )
    rows = (await session.execute(stmt)).scalars().all()
    catalog = ZoneCatalog(zone_from_record(row) for row in rows)
    logger.debug("Loaded %d active delivery zones", len(catalog))
    return catalog


async def list_pickup_locations(session: AsyncSession) -> list[PickupLocationInfo]:
    """Return active pickup points ordered by name."""

    stmt = (
        select(PickupLocation)
        .where(PickupLocation.is_active.is_(True))
        .order_by(PickupLocation.name.asc())
    )
    rows = (await session.execute(stmt)).scalars().all()
    return [_pickup_from_record(row) for row in rows]


async def get_pickup_location(
    session: AsyncSession, location_id: int
) -> PickupLocationInfo | None:
    row = await session.get(PickupLocation, location_id)
    if row is None or not row.is_active:
        return None
    return _pickup_from_record(row)


def _pickup_from_record(row: PickupLocation) -> PickupLocationInfo:
    return PickupLocationInfo(
        id=row.id,
        name=row.name,
        address=f"{row.address}, {row.city}, {row.state} {row.postal_code}",
        postal_code=row.postal_code,
        hours=row.hours,
    )
