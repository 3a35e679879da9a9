"""ORM models package export."""

from storefront.models.delivery_zone import DeliveryZone
from storefront.models.pickup_location import PickupLocation

__all__ = [
    "DeliveryZone",
    "PickupLocation",
]
