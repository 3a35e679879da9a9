"""Checkout session request and response schemas."""

from __future__ import annotations

import uuid
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from storefront.schemas.delivery import (
    PickupLocationRead,
    PricingResultRead,
    ZoneResolutionRead,
)
from storefront.services.checkout_service import (
    Address,
    CheckoutController,
    FulfillmentMethod,
    LineItem,
    PaymentMethodInfo,
    available_steps,
)


class LineItemIn(BaseModel):
    id: int
    name: str
    unit_price: Decimal = Field(ge=Decimal("0"))
    quantity: int = Field(ge=1)
    vendor: str = ""

    def to_item(self) -> LineItem:
        return LineItem(**self.model_dump())


class AddressIn(BaseModel):
    id: int
    postal_code: str
    line1: str
    city: str
    state: str
    recipient: str = ""
    label: str = "home"
    line2: str | None = None
    phone: str | None = None
    country: str = "US"

    model_config = ConfigDict(from_attributes=True)

    def to_address(self) -> Address:
        return Address(**self.model_dump())


class PaymentMethodIn(BaseModel):
    id: int
    kind: str
    display_name: str
    last_four: str | None = Field(default=None, pattern=r"^[0-9]{4}$")

    model_config = ConfigDict(from_attributes=True)

    def to_payment_method(self) -> PaymentMethodInfo:
        return PaymentMethodInfo(**self.model_dump())


class CheckoutCreateRequest(BaseModel):
    items: list[LineItemIn] = Field(min_length=1)


class CartUpdateRequest(BaseModel):
    items: list[LineItemIn] = Field(min_length=1)


class FulfillmentRequest(BaseModel):
    method: FulfillmentMethod


class PickupLocationRequest(BaseModel):
    pickup_location_id: int


class ZoneSelectRequest(BaseModel):
    zone_id: int


class FeeAcknowledgeRequest(BaseModel):
    amount: Decimal | None = None


class InstructionsRequest(BaseModel):
    text: str = ""


class OrderTotalsRead(BaseModel):
    subtotal: Decimal
    delivery_fee: Decimal
    tax: Decimal
    total: Decimal

    model_config = ConfigDict(from_attributes=True)


class CheckoutErrorRead(BaseModel):
    kind: str
    message: str


class CheckoutSessionRead(BaseModel):
    """Snapshot of a checkout session for page-level UIs."""

    id: uuid.UUID
    step: int
    step_label: str
    available_steps: list[str]
    fulfillment_method: FulfillmentMethod | None = None
    pickup_location: PickupLocationRead | None = None
    address: AddressIn | None = None
    zone_resolution: ZoneResolutionRead | None = None
    selected_zone_id: int | None = None
    pricing: PricingResultRead | None = None
    acknowledged_fee: Decimal | None = None
    payment_method: PaymentMethodIn | None = None
    delivery_instructions: str = ""
    processing: bool = False
    order_reference: str | None = None
    last_error: CheckoutErrorRead | None = None
    totals: OrderTotalsRead

    @classmethod
    def from_controller(
        cls, session_id: uuid.UUID, controller: CheckoutController
    ) -> "CheckoutSessionRead":
        session = controller.session
        step = controller.current_step
        return cls(
            id=session_id,
            step=int(step),
            step_label=step.label,
            available_steps=[item.label for item in available_steps(session)],
            fulfillment_method=session.fulfillment_method,
            pickup_location=(
                PickupLocationRead.from_location(session.pickup_location)
                if session.pickup_location
                else None
            ),
            address=(
                AddressIn.model_validate(session.address) if session.address else None
            ),
            zone_resolution=(
                ZoneResolutionRead.from_resolution(session.zone_resolution)
                if session.zone_resolution
                else None
            ),
            selected_zone_id=session.zone.zone.id if session.zone else None,
            pricing=(
                PricingResultRead.from_result(session.pricing)
                if session.pricing
                else None
            ),
            acknowledged_fee=session.acknowledged_fee,
            payment_method=(
                PaymentMethodIn.model_validate(session.payment_method)
                if session.payment_method
                else None
            ),
            delivery_instructions=session.delivery_instructions,
            processing=session.processing,
            order_reference=session.order_reference,
            last_error=(
                CheckoutErrorRead(
                    kind=type(session.last_error).__name__,
                    message=str(session.last_error),
                )
                if session.last_error
                else None
            ),
            totals=OrderTotalsRead.model_validate(controller.totals),
        )
