"""Error taxonomy for zone resolution, pricing and checkout."""

from __future__ import annotations

from decimal import Decimal


class CheckoutError(ValueError):
    """Base class for recoverable checkout-core errors."""


class CheckoutValidationError(CheckoutError):
    """A required selection is missing or an input is malformed.

    ``step`` names the checkout step that rejected the action and ``field``
    the selection the customer still has to provide.
    """

    def __init__(
        self, message: str, *, step: str | None = None, field: str | None = None
    ) -> None:
        super().__init__(message)
        self.step = step
        self.field = field


class NotServiceableError(CheckoutError):
    """The postal code falls outside every active delivery zone."""

    def __init__(self, message: str, *, postal_code: str | None = None) -> None:
        super().__init__(message)
        self.postal_code = postal_code


class IneligibleOrderError(CheckoutError):
    """The order amount is below the zone's minimum qualifying amount."""

    def __init__(self, message: str, *, zone_id: int, shortfall: Decimal) -> None:
        super().__init__(message)
        self.zone_id = zone_id
        self.shortfall = shortfall


class PricingUnavailableError(CheckoutError):
    """The demand signal could not be read; callers fall back to no surge."""


class SubmissionError(CheckoutError):
    """The order placement call failed or timed out."""


class ZoneCatalogError(CheckoutError):
    """Zone reference data violates catalog invariants."""


class ZoneCatalogUnavailableError(ZoneCatalogError):
    """No active zone data is loaded; a configuration problem, not non-coverage."""


__all__ = [
    "CheckoutError",
    "CheckoutValidationError",
    "IneligibleOrderError",
    "NotServiceableError",
    "PricingUnavailableError",
    "SubmissionError",
    "ZoneCatalogError",
    "ZoneCatalogUnavailableError",
]
