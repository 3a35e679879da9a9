"""Checkout orchestration: step transitions, guards, totals and submission."""

from __future__ import annotations

import asyncio
import enum
import logging
import secrets
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Protocol

from storefront.core.settings import CheckoutSettings
from storefront.services.errors import (
    CheckoutError,
    CheckoutValidationError,
    IneligibleOrderError,
    NotServiceableError,
    SubmissionError,
)
from storefront.services.money import ZERO, to_money, to_str
from storefront.services.surge_pricing_service import PricingResult, SurgePricingEngine
from storefront.services.zone_service import (
    ZoneCatalog,
    ZoneMatch,
    ZoneResolution,
    resolve_zones,
)

logger = logging.getLogger(__name__)

MAX_INSTRUCTIONS_LENGTH = 500


class CheckoutStep(enum.IntEnum):
    """Ordered checkout steps."""

    DELIVERY_METHOD = 0
    SHIPPING = 1
    PAYMENT = 2
    REVIEW = 3
    CONFIRMATION = 4

    @property
    def label(self) -> str:
        return _STEP_LABELS[self]


_STEP_LABELS = {
    CheckoutStep.DELIVERY_METHOD: "Delivery",
    CheckoutStep.SHIPPING: "Shipping",
    CheckoutStep.PAYMENT: "Payment",
    CheckoutStep.REVIEW: "Review",
    CheckoutStep.CONFIRMATION: "Confirmation",
}


class FulfillmentMethod(str, enum.Enum):
    """How the customer receives the order."""

    PICKUP = "pickup"
    DELIVERY = "delivery"


@dataclass(frozen=True, slots=True)
class LineItem:
    """Cart line supplied by the cart service."""

    id: int
    name: str
    unit_price: Decimal
    quantity: int
    vendor: str = ""

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass(frozen=True, slots=True)
class Address:
    """Saved address from the customer's address book."""

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


@dataclass(frozen=True, slots=True)
class PickupLocationInfo:
    """Pickup point from the pickup directory."""

    id: int
    name: str
    address: str
    postal_code: str = ""
    hours: str | None = None


@dataclass(frozen=True, slots=True)
class PaymentMethodInfo:
    """Display fields of a saved payment method."""

    id: int
    kind: str
    display_name: str
    last_four: str | None = None


@dataclass(frozen=True, slots=True)
class OrderTotals:
    """Derived order totals; always recomputed from the session."""

    subtotal: Decimal
    delivery_fee: Decimal
    tax: Decimal
    total: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "subtotal": to_str(self.subtotal),
            "delivery_fee": to_str(self.delivery_fee),
            "tax": to_str(self.tax),
            "total": to_str(self.total),
        }


@dataclass(slots=True)
class CheckoutSession:
    """Working state of one in-progress checkout."""

    items: tuple[LineItem, ...] = ()
    step: CheckoutStep = CheckoutStep.DELIVERY_METHOD
    fulfillment_method: FulfillmentMethod | None = None
    pickup_location: PickupLocationInfo | None = None
    address: Address | None = None
    zone_resolution: ZoneResolution | None = None
    zone: ZoneMatch | None = None
    pricing: PricingResult | None = None
    acknowledged_fee: Decimal | None = None
    payment_method: PaymentMethodInfo | None = None
    delivery_instructions: str = ""
    processing: bool = False
    order_reference: str | None = None
    last_error: CheckoutError | None = None

    @property
    def is_pickup(self) -> bool:
        return self.fulfillment_method is FulfillmentMethod.PICKUP


@dataclass(frozen=True, slots=True)
class OrderSubmission:
    """Finalized checkout handed to the order submission endpoint."""

    items: tuple[LineItem, ...]
    fulfillment_method: FulfillmentMethod
    payment_method: PaymentMethodInfo
    totals: OrderTotals
    address: Address | None = None
    pickup_location: PickupLocationInfo | None = None
    zone_id: int | None = None
    surge_multiplier: Decimal | None = None
    delivery_instructions: str = ""

    def to_payload(self) -> dict[str, Any]:
        """Serialize to JSON-ready primitives."""

        payload: dict[str, Any] = {
            "items": [
                {
                    "id": item.id,
                    "name": item.name,
                    "unit_price": to_str(item.unit_price),
                    "quantity": item.quantity,
                    "vendor": item.vendor,
                }
                for item in self.items
            ],
            "fulfillment_method": self.fulfillment_method.value,
            "payment_method_id": self.payment_method.id,
            "delivery_instructions": self.delivery_instructions,
            "totals": self.totals.to_dict(),
        }
        if self.address is not None:
            payload["address_id"] = self.address.id
            payload["postal_code"] = self.address.postal_code
        if self.pickup_location is not None:
            payload["pickup_location_id"] = self.pickup_location.id
        if self.zone_id is not None:
            payload["zone_id"] = self.zone_id
        if self.surge_multiplier is not None:
            payload["surge_multiplier"] = str(self.surge_multiplier)
        return payload


class OrderSubmitter(Protocol):
    """Order placement endpoint; raises SubmissionError on failure."""

    async def submit_order(self, submission: OrderSubmission) -> str | None:
        """Place the order and return its reference when the endpoint assigns one."""


def generate_order_reference(now: datetime | None = None) -> str:
    """Return a reference such as ``ORD-20250101-1A2B3C4D``."""
    stamp = (now or datetime.now(UTC)).strftime("%Y%m%d")
    return f"ORD-{stamp}-{secrets.token_hex(4).upper()}"


def compute_subtotal(items: Iterable[LineItem]) -> Decimal:
    return to_money(sum((item.line_total for item in items), ZERO))


def delivery_fee_for(session: CheckoutSession) -> Decimal:
    """Pickup is free; delivery uses the latest surge price, else the zone fee."""

    if session.is_pickup:
        return ZERO
    if session.zone is None:
        return ZERO
    if session.pricing is not None and session.pricing.zone_id == session.zone.zone.id:
        return session.pricing.surge_price
    return session.zone.zone.delivery_fee


def compute_totals(session: CheckoutSession, tax_rate: Decimal) -> OrderTotals:
    """Pure function of the session; calling it twice yields identical totals."""

    subtotal = compute_subtotal(session.items)
    delivery_fee = to_money(delivery_fee_for(session))
    tax = to_money(subtotal * tax_rate)
    return OrderTotals(
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        tax=tax,
        total=subtotal + delivery_fee + tax,
    )


def next_step(step: CheckoutStep, session: CheckoutSession) -> CheckoutStep:
    """Forward transition; pickup orders skip the shipping step."""

    if step is CheckoutStep.DELIVERY_METHOD and session.is_pickup:
        return CheckoutStep.PAYMENT
    if step is CheckoutStep.CONFIRMATION:
        return step
    return CheckoutStep(step + 1)


def previous_step(step: CheckoutStep, session: CheckoutSession) -> CheckoutStep:
    """Backward transition; pickup orders skip the shipping step."""

    if step is CheckoutStep.PAYMENT and session.is_pickup:
        return CheckoutStep.DELIVERY_METHOD
    if step is CheckoutStep.DELIVERY_METHOD:
        return step
    return CheckoutStep(step - 1)


def visible_step(session: CheckoutSession) -> CheckoutStep:
    """Step to display; shipping is never shown for pickup orders."""

    if session.step is CheckoutStep.SHIPPING and session.is_pickup:
        return CheckoutStep.PAYMENT
    return session.step


def available_steps(session: CheckoutSession) -> list[CheckoutStep]:
    return [
        step
        for step in CheckoutStep
        if not (step is CheckoutStep.SHIPPING and session.is_pickup)
    ]


def _require_delivery_method(session: CheckoutSession) -> None:
    step = CheckoutStep.DELIVERY_METHOD.label
    if not session.items:
        raise CheckoutValidationError("Your cart is empty", step=step, field="items")
    if session.fulfillment_method is None:
        raise CheckoutValidationError(
            "Choose delivery or pickup", step=step, field="fulfillment_method"
        )
    if session.is_pickup and session.pickup_location is None:
        raise CheckoutValidationError(
            "Choose a pickup location", step=step, field="pickup_location"
        )


def _require_shipping(session: CheckoutSession) -> None:
    if session.is_pickup:
        return
    step = CheckoutStep.SHIPPING.label
    if session.address is None:
        raise CheckoutValidationError(
            "Choose a delivery address", step=step, field="address"
        )
    resolution = session.zone_resolution
    if resolution is None or not resolution.is_serviceable:
        raise CheckoutValidationError(
            resolution.message if resolution else "Delivery address has not been checked",
            step=step,
            field="address",
        )
    if session.zone is None:
        raise CheckoutValidationError(
            "Choose a delivery zone", step=step, field="zone"
        )
    if session.zone.zone.id not in {match.zone.id for match in resolution.matched_zones}:
        raise CheckoutValidationError(
            "Selected zone does not serve this address", step=step, field="zone"
        )
    if not session.zone.is_eligible:
        raise CheckoutValidationError(
            f"Add ${to_str(session.zone.shortfall)} more to qualify for "
            f"{session.zone.zone.name}",
            step=step,
            field="zone",
        )
    if session.acknowledged_fee is None or session.acknowledged_fee != delivery_fee_for(
        session
    ):
        raise CheckoutValidationError(
            f"Confirm the ${to_str(delivery_fee_for(session))} delivery fee",
            step=step,
            field="acknowledged_fee",
        )


def _require_payment(session: CheckoutSession) -> None:
    if session.payment_method is None:
        raise CheckoutValidationError(
            "Choose a payment method",
            step=CheckoutStep.PAYMENT.label,
            field="payment_method",
        )


STEP_GUARDS: dict[CheckoutStep, Callable[[CheckoutSession], None]] = {
    CheckoutStep.DELIVERY_METHOD: _require_delivery_method,
    CheckoutStep.SHIPPING: _require_shipping,
    CheckoutStep.PAYMENT: _require_payment,
}


def check_step_complete(step: CheckoutStep, session: CheckoutSession) -> None:
    """Raise CheckoutValidationError when ``step`` lacks required selections."""
    guard = STEP_GUARDS.get(step)
    if guard is not None:
        guard(session)


def is_step_complete(step: CheckoutStep, session: CheckoutSession) -> bool:
    try:
        check_step_complete(step, session)
    except CheckoutValidationError:
        return False
    return True


class CheckoutController:
    """Single writer of a :class:`CheckoutSession`.

    Every user action maps to one method; each method validates, mutates the
    session, and leaves totals to be recomputed on the next read.
    """

    def __init__(
        self,
        *,
        catalog: ZoneCatalog,
        pricing_engine: SurgePricingEngine,
        submitter: OrderSubmitter,
        items: Iterable[LineItem] = (),
        settings: CheckoutSettings | None = None,
    ) -> None:
        self._catalog = catalog
        self._pricing = pricing_engine
        self._submitter = submitter
        self._settings = settings or CheckoutSettings()
        self._unsubscribe: Callable[[], None] | None = None
        self.session = CheckoutSession(items=tuple(items))

    @property
    def current_step(self) -> CheckoutStep:
        return visible_step(self.session)

    @property
    def totals(self) -> OrderTotals:
        return compute_totals(self.session, self._settings.tax_rate)

    # -- selections --------------------------------------------------------

    async def update_items(self, items: Iterable[LineItem]) -> OrderTotals:
        self._ensure_editable()
        self.session.items = tuple(items)
        if self.session.address is not None:
            await self._resolve_for_address(self.session.address)
        return self.totals

    def choose_fulfillment(self, method: FulfillmentMethod | str) -> None:
        self._ensure_editable()
        try:
            self.session.fulfillment_method = FulfillmentMethod(method)
        except ValueError as exc:
            raise CheckoutValidationError(
                f"Unknown fulfillment method {method!r}",
                step=CheckoutStep.DELIVERY_METHOD.label,
                field="fulfillment_method",
            ) from exc
        if (
            not self.session.is_pickup
            and self.session.step > CheckoutStep.SHIPPING
            and not is_step_complete(CheckoutStep.SHIPPING, self.session)
        ):
            self.session.step = CheckoutStep.SHIPPING

    def select_pickup_location(self, location: PickupLocationInfo) -> None:
        self._ensure_editable()
        self.session.pickup_location = location

    def check_postal_code(self, postal_code: str) -> ZoneResolution:
        """Resolve zones for a postal code without changing the session."""
        return resolve_zones(
            self._catalog,
            postal_code,
            compute_subtotal(self.session.items),
            alternative_limit=self._settings.alternative_zone_limit,
        )

    async def select_address(self, address: Address) -> ZoneResolution:
        """Select a delivery address and resolve its zones.

        The best eligible zone is selected automatically unless the current
        selection still serves the address.
        """
        self._ensure_editable()
        self.session.address = address
        return await self._resolve_for_address(address)

    async def select_zone(self, zone_id: int) -> PricingResult:
        self._ensure_editable()
        resolution = self.session.zone_resolution
        if resolution is None:
            raise CheckoutValidationError(
                "Choose a delivery address first",
                step=CheckoutStep.SHIPPING.label,
                field="address",
            )
        if not resolution.is_serviceable:
            raise NotServiceableError(resolution.message, postal_code=resolution.postal_code)
        match = resolution.find(zone_id)
        if match is None:
            raise CheckoutValidationError(
                f"Zone {zone_id} does not deliver to {resolution.postal_code}",
                step=CheckoutStep.SHIPPING.label,
                field="zone",
            )
        if not match.is_eligible:
            raise IneligibleOrderError(
                f"Add ${to_str(match.shortfall)} more to qualify for {match.zone.name}",
                zone_id=zone_id,
                shortfall=match.shortfall,
            )
        return await self._apply_zone(match)

    def acknowledge_delivery_fee(self, amount: Decimal | str | None = None) -> Decimal:
        self._ensure_editable()
        if self.session.zone is None:
            raise CheckoutValidationError(
                "Choose a delivery zone first",
                step=CheckoutStep.SHIPPING.label,
                field="zone",
            )
        fee = delivery_fee_for(self.session)
        if amount is not None and to_money(amount) != fee:
            raise CheckoutValidationError(
                f"The delivery fee is now ${to_str(fee)}",
                step=CheckoutStep.SHIPPING.label,
                field="acknowledged_fee",
            )
        self.session.acknowledged_fee = fee
        return fee

    def select_payment_method(self, payment_method: PaymentMethodInfo) -> None:
        self._ensure_editable()
        self.session.payment_method = payment_method

    def set_delivery_instructions(self, text: str) -> None:
        self._ensure_editable()
        cleaned = (text or "").strip()
        if len(cleaned) > MAX_INSTRUCTIONS_LENGTH:
            raise CheckoutValidationError(
                f"Delivery instructions are limited to {MAX_INSTRUCTIONS_LENGTH} characters",
                step=CheckoutStep.SHIPPING.label,
                field="delivery_instructions",
            )
        self.session.delivery_instructions = cleaned

    async def refresh_pricing(self) -> PricingResult | None:
        """Explicitly recompute the selected zone's surge price."""
        zone = self.session.zone
        if zone is None:
            return None
        result = await self._pricing.refresh(zone.zone.id, zone.zone.delivery_fee)
        self._on_price_update(result)
        return result

    # -- transitions -------------------------------------------------------

    async def advance(self) -> CheckoutStep:
        self._ensure_editable()
        step = visible_step(self.session)
        if step is CheckoutStep.REVIEW:
            raise CheckoutValidationError(
                "Place the order to continue", step=step.label
            )
        if step is CheckoutStep.SHIPPING and self.session.zone is not None:
            await self._sync_pricing()
        self._check_earlier_steps(step)
        check_step_complete(step, self.session)
        self.session.step = next_step(step, self.session)
        self.session.last_error = None
        return self.session.step

    def go_back(self) -> CheckoutStep:
        if self.session.step is CheckoutStep.CONFIRMATION:
            raise CheckoutValidationError(
                "This order has already been placed",
                step=CheckoutStep.CONFIRMATION.label,
            )
        if self.session.processing:
            raise CheckoutValidationError(
                "Your order is being placed", step=CheckoutStep.REVIEW.label
            )
        self.session.step = previous_step(visible_step(self.session), self.session)
        return self.session.step

    def build_submission(self) -> OrderSubmission:
        session = self.session
        if session.fulfillment_method is None or session.payment_method is None:
            raise CheckoutValidationError("Checkout is incomplete")
        delivery = not session.is_pickup
        return OrderSubmission(
            items=session.items,
            fulfillment_method=session.fulfillment_method,
            payment_method=session.payment_method,
            totals=self.totals,
            address=session.address if delivery else None,
            pickup_location=None if delivery else session.pickup_location,
            zone_id=session.zone.zone.id if delivery and session.zone else None,
            surge_multiplier=(
                session.pricing.multiplier if delivery and session.pricing else None
            ),
            delivery_instructions=session.delivery_instructions if delivery else "",
        )

    async def submit(self) -> str | None:
        """Place the order.

        Returns the order reference on success. Returns ``None`` when a
        submission is already in flight or when placement failed; failures are
        recorded on ``session.last_error`` and the session stays on review.
        """
        session = self.session
        if session.processing:
            logger.info("Ignoring duplicate order submission while one is in flight")
            return None
        if visible_step(session) is not CheckoutStep.REVIEW:
            raise CheckoutValidationError(
                "Orders can only be placed from the review step",
                step=visible_step(session).label,
            )
        for step in (
            CheckoutStep.DELIVERY_METHOD,
            CheckoutStep.SHIPPING,
            CheckoutStep.PAYMENT,
        ):
            check_step_complete(step, session)

        submission = self.build_submission()
        session.processing = True
        session.last_error = None
        try:
            async with asyncio.timeout(self._settings.order_submit_timeout_seconds):
                reference = await self._submitter.submit_order(submission)
        except TimeoutError:
            session.last_error = SubmissionError(
                "Placing the order timed out. Please try again."
            )
        except SubmissionError as exc:
            session.last_error = exc
        else:
            session.order_reference = reference or generate_order_reference()
            session.step = CheckoutStep.CONFIRMATION
            self._release_pricing()
            logger.info(
                "Order %s placed (%s, total %s)",
                session.order_reference,
                submission.fulfillment_method.value,
                to_str(submission.totals.total),
            )
            return session.order_reference
        finally:
            session.processing = False

        logger.warning("Order submission failed: %s", session.last_error)
        return None

    def close(self) -> None:
        """Abandon the checkout and detach from live pricing."""
        self._release_pricing()

    # -- internals ---------------------------------------------------------

    def _ensure_editable(self) -> None:
        if self.session.step is CheckoutStep.CONFIRMATION:
            raise CheckoutValidationError(
                "This order has already been placed",
                step=CheckoutStep.CONFIRMATION.label,
            )
        if self.session.processing:
            raise CheckoutValidationError(
                "Your order is being placed", step=CheckoutStep.REVIEW.label
            )

    def _check_earlier_steps(self, step: CheckoutStep) -> None:
        """Send the session back to the first earlier step that is incomplete."""
        for earlier in available_steps(self.session):
            if earlier >= step:
                return
            try:
                check_step_complete(earlier, self.session)
            except CheckoutValidationError:
                self.session.step = earlier
                raise

    async def _resolve_for_address(self, address: Address) -> ZoneResolution:
        resolution = self.check_postal_code(address.postal_code)
        self.session.zone_resolution = resolution
        current = self.session.zone
        if current is not None:
            refreshed = resolution.find(current.zone.id)
            if refreshed is not None and refreshed.is_eligible:
                self.session.zone = refreshed
                return resolution
        best = resolution.best_zone
        if best is not None:
            await self._apply_zone(best)
        else:
            self._clear_zone(keep_match=resolution.find(current.zone.id) if current else None)
        return resolution

    async def _apply_zone(self, match: ZoneMatch) -> PricingResult:
        previous = self.session.zone
        if previous is None or previous.zone.id != match.zone.id:
            self._release_pricing()
            self.session.acknowledged_fee = None
            self._unsubscribe = self._pricing.subscribe(match.zone.id, self._on_price_update)
        self.session.zone = match
        result = await self._pricing.get_price(match.zone.id, match.zone.delivery_fee)
        self._on_price_update(result)
        return result

    def _clear_zone(self, keep_match: ZoneMatch | None = None) -> None:
        if keep_match is not None:
            self.session.zone = keep_match
            return
        self._release_pricing()
        self.session.zone = None
        self.session.pricing = None
        self.session.acknowledged_fee = None

    async def _sync_pricing(self) -> None:
        zone = self.session.zone
        if zone is not None:
            self._on_price_update(
                await self._pricing.get_price(zone.zone.id, zone.zone.delivery_fee)
            )

    def _on_price_update(self, result: PricingResult) -> None:
        zone = self.session.zone
        if zone is None or result.zone_id != zone.zone.id:
            return
        if result.base_price != zone.zone.delivery_fee:
            return
        self.session.pricing = result
        if (
            self.session.acknowledged_fee is not None
            and self.session.acknowledged_fee != result.surge_price
        ):
            self.session.acknowledged_fee = None

    def _release_pricing(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


__all__ = [
    "Address",
    "CheckoutController",
    "CheckoutSession",
    "CheckoutStep",
    "FulfillmentMethod",
    "LineItem",
    "OrderSubmission",
    "OrderSubmitter",
    "OrderTotals",
    "PaymentMethodInfo",
    "PickupLocationInfo",
    "available_steps",
    "check_step_complete",
    "compute_subtotal",
    "compute_totals",
    "delivery_fee_for",
    "generate_order_reference",
    "is_step_complete",
    "next_step",
    "previous_step",
    "visible_step",
]
