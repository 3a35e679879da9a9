"""Health check endpoints."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api import deps
from storefront.core.config import get_settings
from storefront.models import DeliveryZone
from storefront.services.checkout_service import OrderSubmitter

router = APIRouter()


@router.get("", summary="Service health status")
async def healthcheck(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    submitter: Annotated[OrderSubmitter, Depends(deps.get_order_submitter)],
) -> dict[str, Any]:
    """Report service metadata, loaded zone count and integration modes."""
    settings = get_settings()
    active_zones = await session.scalar(
        select(func.count())
        .select_from(DeliveryZone)
        .where(DeliveryZone.is_active.is_(True))
    )
    return {
        "status": "ok" if active_zones else "degraded",
        "service": settings.app_name,
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": settings.app_env,
        "active_zones": active_zones or 0,
        "demand_source": "remote" if settings.demand_service_url else "static",
        "order_submitter": (
            "local" if getattr(submitter, "is_local", False) else "remote"
        ),
    }
