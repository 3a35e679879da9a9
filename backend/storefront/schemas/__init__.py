"""Schema exports."""

from storefront.schemas.checkout import (
    AddressIn,
    CartUpdateRequest,
    CheckoutCreateRequest,
    CheckoutSessionRead,
    FeeAcknowledgeRequest,
    FulfillmentRequest,
    InstructionsRequest,
    LineItemIn,
    OrderTotalsRead,
    PaymentMethodIn,
    PickupLocationRequest,
    ZoneSelectRequest,
)
from storefront.schemas.delivery import (
    DeliveryZoneRead,
    PickupLocationRead,
    PricingResultRead,
    ZoneMatchRead,
    ZoneResolutionRead,
)

__all__ = [
    "AddressIn",
    "CartUpdateRequest",
    "CheckoutCreateRequest",
    "CheckoutSessionRead",
    "DeliveryZoneRead",
    "FeeAcknowledgeRequest",
    "FulfillmentRequest",
    "InstructionsRequest",
    "LineItemIn",
    "OrderTotalsRead",
    "PaymentMethodIn",
    "PickupLocationRead",
    "PickupLocationRequest",
    "PricingResultRead",
    "ZoneMatchRead",
    "ZoneResolutionRead",
    "ZoneSelectRequest",
]
