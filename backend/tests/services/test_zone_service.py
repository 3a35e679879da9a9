"""Tests for delivery zone resolution."""

from __future__ import annotations

from decimal import Decimal

import pytest

from storefront.services.errors import (
    CheckoutValidationError,
    ZoneCatalogError,
    ZoneCatalogUnavailableError,
)
from storefront.services.zone_service import (
    DeliveryZoneInfo,
    ResolutionStatus,
    ZoneCatalog,
    ZoneRestriction,
    format_delivery_window,
    normalize_postal_code,
    resolve_zones,
    restriction_labels,
    zone_from_record,
)


def _zone(zone_id: int, patterns: tuple[str, ...], *, priority: int = 1, **kwargs) -> DeliveryZoneInfo:
    values = {
        "name": f"Zone {zone_id}",
        "delivery_fee": Decimal("4.99"),
        "min_order_amount": Decimal("0.00"),
        "min_delivery_minutes": 30,
        "max_delivery_minutes": 90,
    }
    values.update(kwargs)
    return DeliveryZoneInfo(id=zone_id, postal_patterns=patterns, priority=priority, **values)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("10001", "10001"),
        (" 10001 ", "10001"),
        ("10001-1234", "10001"),
        ("100011234", "10001"),
        ("1000", None),
        ("ABCDE", None),
        ("١٠٠٠١", None),
        ("１０００１", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_postal_code(raw: str | None, expected: str | None) -> None:
    assert normalize_postal_code(raw) == expected


def test_premium_zone_ranks_first_when_eligible(catalog: ZoneCatalog) -> None:
    resolution = resolve_zones(catalog, "10001", Decimal("150.00"))

    assert resolution.status is ResolutionStatus.SERVICEABLE
    assert [match.zone.name for match in resolution.matched_zones] == [
        "Premium Express",
        "Downtown Core",
    ]
    assert resolution.best_zone is not None
    assert resolution.best_zone.zone.name == "Premium Express"
    assert resolution.message == "Delivery available to 10001."


def test_ineligible_premium_zone_reports_shortfall(catalog: ZoneCatalog) -> None:
    resolution = resolve_zones(catalog, "10002", Decimal("40.00"))

    premium = resolution.find(5)
    assert premium is not None
    assert premium.is_eligible is False
    assert premium.shortfall == Decimal("60.00")
    assert resolution.best_zone is not None
    assert resolution.best_zone.zone.name == "Downtown Core"


def test_below_minimum_everywhere(catalog: ZoneCatalog) -> None:
    resolution = resolve_zones(catalog, "10020", Decimal("20.00"))

    assert resolution.status is ResolutionStatus.BELOW_MINIMUM
    assert resolution.is_serviceable is True
    assert resolution.eligible_zones == []
    assert resolution.best_zone is None
    assert resolution.message == "Add $30.00 more to qualify for delivery to 10020."


def test_exact_minimum_is_eligible(catalog: ZoneCatalog) -> None:
    resolution = resolve_zones(catalog, "10010", "35.00")

    assert resolution.status is ResolutionStatus.SERVICEABLE
    match = resolution.find(2)
    assert match is not None and match.is_eligible
    assert match.shortfall == Decimal("0.00")


def test_not_serviceable_lists_nearby_alternatives(catalog: ZoneCatalog) -> None:
    resolution = resolve_zones(catalog, "10040", Decimal("100.00"))

    assert resolution.status is ResolutionStatus.NOT_SERVICEABLE
    assert resolution.is_serviceable is False
    assert resolution.matched_zones == []
    assert [zone.name for zone in resolution.alternative_zones] == [
        "Extended",
        "Suburban",
        "Metropolitan",
    ]
    assert "Nearby coverage: Extended, Suburban, Metropolitan." in resolution.message


def test_alternative_limit_is_respected(catalog: ZoneCatalog) -> None:
    resolution = resolve_zones(catalog, "10040", Decimal("0"), alternative_limit=1)
    assert [zone.id for zone in resolution.alternative_zones] == [4]


def test_no_alternatives_outside_region(catalog: ZoneCatalog) -> None:
    resolution = resolve_zones(catalog, "94105", Decimal("50"))

    assert resolution.status is ResolutionStatus.NOT_SERVICEABLE
    assert resolution.alternative_zones == []
    assert resolution.message == "Sorry, we don't deliver to postal code 94105 yet."


def test_invalid_postal_code_is_not_an_error(catalog: ZoneCatalog) -> None:
    resolution = resolve_zones(catalog, "12AB", Decimal("50"))

    assert resolution.status is ResolutionStatus.INVALID_POSTAL_CODE
    assert resolution.is_serviceable is False
    assert "not a valid postal code" in resolution.message


def test_negative_amount_is_rejected(catalog: ZoneCatalog) -> None:
    with pytest.raises(CheckoutValidationError) as excinfo:
        resolve_zones(catalog, "10001", Decimal("-1"))
    assert excinfo.value.field == "order_amount"


def test_empty_catalog_is_unavailable() -> None:
    with pytest.raises(ZoneCatalogUnavailableError):
        resolve_zones(ZoneCatalog([]), "10001", Decimal("10"))


def test_inactive_zones_are_ignored() -> None:
    catalog = ZoneCatalog(
        [
            _zone(1, ("10001",), is_active=False),
            _zone(2, ("10002",)),
        ]
    )
    resolution = resolve_zones(catalog, "10001", Decimal("10"))
    assert resolution.status is ResolutionStatus.NOT_SERVICEABLE
    assert [zone.id for zone in catalog.active_zones()] == [2]


def test_wildcard_patterns_match_prefix() -> None:
    catalog = ZoneCatalog([_zone(1, ("941*",))])
    assert resolve_zones(catalog, "94105", Decimal("0")).status is ResolutionStatus.SERVICEABLE
    assert resolve_zones(catalog, "94205", Decimal("0")).status is ResolutionStatus.NOT_SERVICEABLE


def test_same_tier_overlap_is_rejected() -> None:
    with pytest.raises(ZoneCatalogError, match="both cover 10001"):
        ZoneCatalog([_zone(1, ("1000*",)), _zone(2, ("10001",))])


def test_overlap_across_tiers_is_allowed() -> None:
    catalog = ZoneCatalog([_zone(1, ("1000*",)), _zone(2, ("10001",), priority=0)])
    assert len(catalog) == 2


def test_duplicate_zone_ids_are_rejected() -> None:
    with pytest.raises(ZoneCatalogError, match="Duplicate"):
        ZoneCatalog([_zone(1, ("10001",)), _zone(1, ("10002",))])


def test_zone_from_record_reads_restriction_flags() -> None:
    class Row:
        id = 7
        name = "Harbor"
        description = None
        postal_patterns = ["10050"]
        delivery_fee = 6.5
        min_order_amount = "20"
        min_delivery_minutes = None
        max_delivery_minutes = 90
        priority = 2
        restrictions = {"no_evening_delivery": True, "requires_signature": False, "hovercraft": True}
        is_active = True

    zone = zone_from_record(Row())

    assert zone.delivery_fee == Decimal("6.50")
    assert zone.min_order_amount == Decimal("20.00")
    assert zone.min_delivery_minutes == 0
    assert zone.restrictions == frozenset({ZoneRestriction.NO_EVENING_DELIVERY})


def test_restriction_labels_and_windows(catalog: ZoneCatalog) -> None:
    extended = catalog.get(4)
    assert extended is not None
    assert restriction_labels(extended) == [
        "No weekend delivery",
        "No evening delivery (after 6 PM)",
    ]
    assert format_delivery_window(720, 1440) == "12 hours to 1 day"
    assert format_delivery_window(30, 60) == "30 minutes to 1 hour"
    assert format_delivery_window(0, 45) == "Within 45 minutes"
