"""Checkout session endpoints.

Each session is driven by a process-local :class:`CheckoutController`; every
action returns the full session snapshot so clients can re-render the page.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api import deps
from storefront.core.settings import CheckoutSettings
from storefront.schemas.checkout import (
    AddressIn,
    CartUpdateRequest,
    CheckoutCreateRequest,
    CheckoutSessionRead,
    FeeAcknowledgeRequest,
    FulfillmentRequest,
    InstructionsRequest,
    PaymentMethodIn,
    PickupLocationRequest,
    ZoneSelectRequest,
)
from storefront.schemas.delivery import ZoneResolutionRead
from storefront.services import catalog_service, checkout_registry
from storefront.services.checkout_service import CheckoutController, OrderSubmitter
from storefront.services.errors import CheckoutError
from storefront.services.surge_pricing_service import SurgePricingEngine
from storefront.services.zone_service import ZoneCatalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout/sessions", tags=["checkout"])

Controller = Annotated[CheckoutController, Depends(deps.get_checkout_controller)]


def _snapshot(session_id: UUID, controller: CheckoutController) -> CheckoutSessionRead:
    return CheckoutSessionRead.from_controller(session_id, controller)


@router.post(
    "",
    response_model=CheckoutSessionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Start a checkout session",
)
async def create_checkout_session(
    payload: CheckoutCreateRequest,
    catalog: Annotated[ZoneCatalog, Depends(deps.get_zone_catalog)],
    engine: Annotated[SurgePricingEngine, Depends(deps.get_pricing_engine)],
    submitter: Annotated[OrderSubmitter, Depends(deps.get_order_submitter)],
    config: Annotated[CheckoutSettings, Depends(deps.get_checkout_config)],
) -> CheckoutSessionRead:
    controller = CheckoutController(
        catalog=catalog,
        pricing_engine=engine,
        submitter=submitter,
        items=[item.to_item() for item in payload.items],
        settings=config,
    )
    session_id = checkout_registry.register(controller)
    logger.info("Started checkout session %s with %d items", session_id, len(payload.items))
    return _snapshot(session_id, controller)


@router.get("/{session_id}", response_model=CheckoutSessionRead)
async def get_checkout_session(
    session_id: UUID, controller: Controller
) -> CheckoutSessionRead:
    return _snapshot(session_id, controller)


@router.delete(
    "/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Abandon a checkout session",
)
async def abandon_checkout_session(session_id: UUID) -> Response:
    if not checkout_registry.discard(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Checkout session not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{session_id}/items", response_model=CheckoutSessionRead)
async def update_items(
    session_id: UUID, payload: CartUpdateRequest, controller: Controller
) -> CheckoutSessionRead:
    try:
        await controller.update_items(item.to_item() for item in payload.items)
    except CheckoutError as exc:
        raise deps.to_http_error(exc) from exc
    return _snapshot(session_id, controller)


@router.post("/{session_id}/fulfillment", response_model=CheckoutSessionRead)
async def choose_fulfillment(
    session_id: UUID, payload: FulfillmentRequest, controller: Controller
) -> CheckoutSessionRead:
    try:
        controller.choose_fulfillment(payload.method)
    except CheckoutError as exc:
        raise deps.to_http_error(exc) from exc
    return _snapshot(session_id, controller)


@router.post("/{session_id}/pickup-location", response_model=CheckoutSessionRead)
async def select_pickup_location(
    session_id: UUID,
    payload: PickupLocationRequest,
    controller: Controller,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> CheckoutSessionRead:
    location = await catalog_service.get_pickup_location(
        session, payload.pickup_location_id
    )
    if location is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Pickup location not found"
        )
    try:
        controller.select_pickup_location(location)
    except CheckoutError as exc:
        raise deps.to_http_error(exc) from exc
    return _snapshot(session_id, controller)


@router.get(
    "/{session_id}/postal-check",
    response_model=ZoneResolutionRead,
    summary="Check delivery coverage without changing the session",
)
async def check_postal_code(
    controller: Controller,
    postal_code: Annotated[str, Query(max_length=16)],
) -> ZoneResolutionRead:
    try:
        resolution = controller.check_postal_code(postal_code)
    except CheckoutError as exc:
        raise deps.to_http_error(exc) from exc
    return ZoneResolutionRead.from_resolution(resolution)


@router.post("/{session_id}/address", response_model=CheckoutSessionRead)
async def select_address(
    session_id: UUID, payload: AddressIn, controller: Controller
) -> CheckoutSessionRead:
    """Select the delivery address; coverage problems are reported in the snapshot."""
    try:
        await controller.select_address(payload.to_address())
    except CheckoutError as exc:
        raise deps.to_http_error(exc) from exc
    return _snapshot(session_id, controller)


@router.post("/{session_id}/zone", response_model=CheckoutSessionRead)
async def select_zone(
    session_id: UUID, payload: ZoneSelectRequest, controller: Controller
) -> CheckoutSessionRead:
    try:
        await controller.select_zone(payload.zone_id)
    except CheckoutError as exc:
        raise deps.to_http_error(exc) from exc
    return _snapshot(session_id, controller)


@router.post("/{session_id}/acknowledge-fee", response_model=CheckoutSessionRead)
async def acknowledge_delivery_fee(
    session_id: UUID,
    controller: Controller,
    payload: FeeAcknowledgeRequest | None = None,
) -> CheckoutSessionRead:
    """Confirm the current delivery fee, optionally asserting the amount shown."""
    try:
        controller.acknowledge_delivery_fee(payload.amount if payload else None)
    except CheckoutError as exc:
        raise deps.to_http_error(exc) from exc
    return _snapshot(session_id, controller)


@router.post("/{session_id}/pricing/refresh", response_model=CheckoutSessionRead)
async def refresh_pricing(session_id: UUID, controller: Controller) -> CheckoutSessionRead:
    await controller.refresh_pricing()
    return _snapshot(session_id, controller)


@router.post("/{session_id}/payment-method", response_model=CheckoutSessionRead)
async def select_payment_method(
    session_id: UUID, payload: PaymentMethodIn, controller: Controller
) -> CheckoutSessionRead:
    try:
        controller.select_payment_method(payload.to_payment_method())
    except CheckoutError as exc:
        raise deps.to_http_error(exc) from exc
    return _snapshot(session_id, controller)


@router.post("/{session_id}/instructions", response_model=CheckoutSessionRead)
async def set_delivery_instructions(
    session_id: UUID, payload: InstructionsRequest, controller: Controller
) -> CheckoutSessionRead:
    try:
        controller.set_delivery_instructions(payload.text)
    except CheckoutError as exc:
        raise deps.to_http_error(exc) from exc
    return _snapshot(session_id, controller)


@router.post("/{session_id}/advance", response_model=CheckoutSessionRead)
async def advance(session_id: UUID, controller: Controller) -> CheckoutSessionRead:
    try:
        await controller.advance()
    except CheckoutError as exc:
        raise deps.to_http_error(exc) from exc
    return _snapshot(session_id, controller)


@router.post("/{session_id}/back", response_model=CheckoutSessionRead)
async def go_back(session_id: UUID, controller: Controller) -> CheckoutSessionRead:
    try:
        controller.go_back()
    except CheckoutError as exc:
        raise deps.to_http_error(exc) from exc
    return _snapshot(session_id, controller)


@router.post("/{session_id}/submit", response_model=CheckoutSessionRead)
async def submit_order(session_id: UUID, controller: Controller) -> CheckoutSessionRead:
    """Place the order; failures stay on review with ``last_error`` set."""
    try:
        await controller.submit()
    except CheckoutError as exc:
        raise deps.to_http_error(exc) from exc
    return _snapshot(session_id, controller)
