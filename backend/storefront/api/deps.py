"""Common API dependencies."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.settings import CheckoutSettings, get_checkout_settings
from storefront.db.session import get_session
from storefront.services import catalog_service, checkout_registry
from storefront.services.checkout_service import CheckoutController, OrderSubmitter
from storefront.services.errors import (
    CheckoutError,
    CheckoutValidationError,
    IneligibleOrderError,
    NotServiceableError,
    ZoneCatalogError,
)
from storefront.services.surge_pricing_service import SurgePricingEngine
from storefront.services.zone_service import ZoneCatalog


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session."""
    async for session in get_session():
        yield session


def get_pricing_engine(request: Request) -> SurgePricingEngine:
    return request.app.state.pricing_engine


def get_order_submitter(request: Request) -> OrderSubmitter:
    return request.app.state.order_submitter


def get_checkout_config() -> CheckoutSettings:
    return get_checkout_settings()


async def get_zone_catalog(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ZoneCatalog:
    """Load the active zone catalog; invalid reference data is a 503."""
    try:
        return await catalog_service.load_zone_catalog(session)
    except ZoneCatalogError as exc:
        raise to_http_error(exc) from exc


def get_checkout_controller(session_id: UUID) -> CheckoutController:
    controller = checkout_registry.get(session_id)
    if controller is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Checkout session not found"
        )
    return controller


def to_http_error(exc: CheckoutError) -> HTTPException:
    """Translate a checkout-core error into the matching HTTP error."""
    if isinstance(exc, ZoneCatalogError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, (NotServiceableError, IneligibleOrderError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, CheckoutValidationError):
        code = status.HTTP_422_UNPROCESSABLE_CONTENT
        if exc.field or exc.step:
            return HTTPException(
                status_code=code,
                detail={"message": str(exc), "step": exc.step, "field": exc.field},
            )
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(exc))
