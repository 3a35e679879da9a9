"""Delivery zone resolution for postal codes and order amounts."""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from storefront.services.errors import (
    CheckoutValidationError,
    ZoneCatalogError,
    ZoneCatalogUnavailableError,
)
from storefront.services.money import ZERO, to_money, to_str

logger = logging.getLogger(__name__)

_POSTAL_CODE_RE = re.compile(r"^([0-9]{5})(?:-?([0-9]{4}))?$")
REGION_PREFIX_LENGTH = 3
DEFAULT_ALTERNATIVE_LIMIT = 3


class ZoneRestriction(str, enum.Enum):
    """Informational restriction flags attached to a zone."""

    NO_WEEKEND_DELIVERY = "no_weekend_delivery"
    NO_EVENING_DELIVERY = "no_evening_delivery"
    REQUIRES_SIGNATURE = "requires_signature"
    FRAGILE_ITEMS_ONLY = "fragile_items_only"
    SIZE_LIMITED = "size_limited"


_RESTRICTION_LABELS: dict[ZoneRestriction, str] = {
    ZoneRestriction.NO_WEEKEND_DELIVERY: "No weekend delivery",
    ZoneRestriction.NO_EVENING_DELIVERY: "No evening delivery (after 6 PM)",
    ZoneRestriction.REQUIRES_SIGNATURE: "Signature required",
    ZoneRestriction.FRAGILE_ITEMS_ONLY: "Fragile items only",
    ZoneRestriction.SIZE_LIMITED: "Large items not eligible for this zone",
}


class ResolutionStatus(str, enum.Enum):
    """Outcome of resolving a postal code against the zone catalog."""

    SERVICEABLE = "serviceable"
    BELOW_MINIMUM = "below_minimum"
    NOT_SERVICEABLE = "not_serviceable"
    INVALID_POSTAL_CODE = "invalid_postal_code"


@dataclass(frozen=True, slots=True)
class DeliveryZoneInfo:
    """Immutable snapshot of a delivery zone's reference data."""

    id: int
    name: str
    postal_patterns: tuple[str, ...]
    delivery_fee: Decimal
    min_order_amount: Decimal
    min_delivery_minutes: int
    max_delivery_minutes: int
    priority: int
    restrictions: frozenset[ZoneRestriction] = frozenset()
    description: str = ""
    is_active: bool = True

    def covers(self, postal_code: str) -> bool:
        return any(_pattern_matches(pattern, postal_code) for pattern in self.postal_patterns)


@dataclass(frozen=True, slots=True)
class ZoneMatch:
    """A zone covering the requested postal code plus its eligibility."""

    zone: DeliveryZoneInfo
    is_eligible: bool
    shortfall: Decimal

    @property
    def restrictions(self) -> list[str]:
        return restriction_labels(self.zone)

    @property
    def delivery_window(self) -> str:
        return format_delivery_window(
            self.zone.min_delivery_minutes, self.zone.max_delivery_minutes
        )


@dataclass(frozen=True, slots=True)
class ZoneResolution:
    """Result of :func:`resolve_zones`."""

    postal_code: str
    order_amount: Decimal
    status: ResolutionStatus
    message: str
    matched_zones: list[ZoneMatch] = field(default_factory=list)
    alternative_zones: list[DeliveryZoneInfo] = field(default_factory=list)

    @property
    def is_serviceable(self) -> bool:
        return self.status in (ResolutionStatus.SERVICEABLE, ResolutionStatus.BELOW_MINIMUM)

    @property
    def eligible_zones(self) -> list[ZoneMatch]:
        return [match for match in self.matched_zones if match.is_eligible]

    @property
    def best_zone(self) -> ZoneMatch | None:
        eligible = self.eligible_zones
        return eligible[0] if eligible else None

    def find(self, zone_id: int) -> ZoneMatch | None:
        for match in self.matched_zones:
            if match.zone.id == zone_id:
                return match
        return None


class ZoneCatalog:
    """Read-only collection of delivery zones.

    Construction enforces that no postal code is covered by two active zones
    of the same priority tier.
    """

    def __init__(self, zones: Iterable[DeliveryZoneInfo]) -> None:
        self._zones: dict[int, DeliveryZoneInfo] = {}
        for zone in zones:
            if zone.id in self._zones:
                raise ZoneCatalogError(f"Duplicate delivery zone id {zone.id}")
            self._zones[zone.id] = zone
        self._check_tier_overlaps()

    def __len__(self) -> int:
        return len(self._zones)

    def get(self, zone_id: int) -> DeliveryZoneInfo | None:
        return self._zones.get(zone_id)

    def active_zones(self) -> list[DeliveryZoneInfo]:
        """Return active zones ordered by priority (premium first), then id."""
        return sorted(
            (zone for zone in self._zones.values() if zone.is_active),
            key=lambda zone: (zone.priority, zone.id),
        )

    def _check_tier_overlaps(self) -> None:
        by_tier: dict[int, list[DeliveryZoneInfo]] = {}
        for zone in self._zones.values():
            if zone.is_active:
                by_tier.setdefault(zone.priority, []).append(zone)
        for tier, zones in by_tier.items():
            for index, first in enumerate(zones):
                for second in zones[index + 1 :]:
                    overlap = _first_overlap(first.postal_patterns, second.postal_patterns)
                    if overlap is not None:
                        raise ZoneCatalogError(
                            f"Zones {first.id} and {second.id} both cover {overlap} "
                            f"in priority tier {tier}"
                        )


def zone_from_record(record: Any) -> DeliveryZoneInfo:
    """Build a zone snapshot from an ORM row or any attribute-compatible object."""

    raw_restrictions: Mapping[str, Any] | Iterable[str] = record.restrictions or {}
    if isinstance(raw_restrictions, Mapping):
        flags = [name for name, enabled in raw_restrictions.items() if enabled]
    else:
        flags = list(raw_restrictions)
    restrictions: set[ZoneRestriction] = set()
    for flag in flags:
        try:
            restrictions.add(ZoneRestriction(flag))
        except ValueError:
            logger.warning("Ignoring unknown restriction %r on zone %s", flag, record.id)
    return DeliveryZoneInfo(
        id=record.id,
        name=record.name,
        description=record.description or "",
        postal_patterns=tuple(record.postal_patterns or ()),
        delivery_fee=to_money(record.delivery_fee),
        min_order_amount=to_money(record.min_order_amount),
        min_delivery_minutes=int(record.min_delivery_minutes or 0),
        max_delivery_minutes=int(record.max_delivery_minutes),
        priority=int(record.priority),
        restrictions=frozenset(restrictions),
        is_active=bool(record.is_active),
    )


def normalize_postal_code(raw: str | None) -> str | None:
    """Return the five-digit ZIP for ``raw`` or ``None`` when it is malformed."""

    if raw is None:
        return None
    match = _POSTAL_CODE_RE.match(raw.strip())
    if match is None:
        return None
    return match.group(1)


def resolve_zones(
    catalog: ZoneCatalog,
    postal_code: str | None,
    order_amount: Decimal | float | int | str,
    *,
    alternative_limit: int = DEFAULT_ALTERNATIVE_LIMIT,
) -> ZoneResolution:
    """Resolve candidate delivery zones for a postal code and order amount."""

    amount = to_money(order_amount)
    if amount < ZERO:
        raise CheckoutValidationError(
            "Order amount cannot be negative", field="order_amount"
        )

    active = catalog.active_zones()
    if not active:
        raise ZoneCatalogUnavailableError("No active delivery zones are configured")

    normalized = normalize_postal_code(postal_code)
    if normalized is None:
        return ZoneResolution(
            postal_code=(postal_code or "").strip(),
            order_amount=amount,
            status=ResolutionStatus.INVALID_POSTAL_CODE,
            message=(
                f"'{(postal_code or '').strip()}' is not a valid postal code. "
                "Enter a 5-digit ZIP code."
            ),
        )

    matched = [
        _match(zone, amount) for zone in active if zone.covers(normalized)
    ]
    if not matched:
        alternatives = _nearby_zones(active, normalized, alternative_limit)
        message = f"Sorry, we don't deliver to postal code {normalized} yet."
        if alternatives:
            names = ", ".join(zone.name for zone in alternatives)
            message += f" Nearby coverage: {names}."
        logger.info(
            "Postal code %s not serviceable (%d alternatives)",
            normalized,
            len(alternatives),
        )
        return ZoneResolution(
            postal_code=normalized,
            order_amount=amount,
            status=ResolutionStatus.NOT_SERVICEABLE,
            message=message,
            alternative_zones=alternatives,
        )

    if not any(match.is_eligible for match in matched):
        smallest = min(match.shortfall for match in matched)
        return ZoneResolution(
            postal_code=normalized,
            order_amount=amount,
            status=ResolutionStatus.BELOW_MINIMUM,
            message=(
                f"Add ${to_str(smallest)} more to qualify for delivery to {normalized}."
            ),
            matched_zones=matched,
        )

    return ZoneResolution(
        postal_code=normalized,
        order_amount=amount,
        status=ResolutionStatus.SERVICEABLE,
        message=f"Delivery available to {normalized}.",
        matched_zones=matched,
    )


def restriction_labels(zone: DeliveryZoneInfo) -> list[str]:
    """Human-readable restriction strings in a stable order."""
    return [
        label
        for restriction, label in _RESTRICTION_LABELS.items()
        if restriction in zone.restrictions
    ]


def format_delivery_time(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    if minutes < 1440:
        hours = minutes // 60
        return f"{hours} hour{'s' if hours > 1 else ''}"
    days = minutes // 1440
    return f"{days} day{'s' if days > 1 else ''}"


def format_delivery_window(min_minutes: int, max_minutes: int) -> str:
    if min_minutes <= 0 or min_minutes >= max_minutes:
        return f"Within {format_delivery_time(max_minutes)}"
    return f"{format_delivery_time(min_minutes)} to {format_delivery_time(max_minutes)}"


def _match(zone: DeliveryZoneInfo, amount: Decimal) -> ZoneMatch:
    shortfall = max(zone.min_order_amount - amount, ZERO)
    return ZoneMatch(zone=zone, is_eligible=shortfall == ZERO, shortfall=to_money(shortfall))


def _pattern_matches(pattern: str, postal_code: str) -> bool:
    if pattern.endswith("*"):
        return postal_code.startswith(pattern[:-1])
    return postal_code == pattern


def _first_overlap(first: Iterable[str], second: Iterable[str]) -> str | None:
    second = list(second)
    for left in first:
        left_prefix = left[:-1] if left.endswith("*") else left
        for right in second:
            right_prefix = right[:-1] if right.endswith("*") else right
            if left == right:
                return left
            if left.endswith("*") and right_prefix.startswith(left_prefix):
                return right
            if right.endswith("*") and left_prefix.startswith(right_prefix):
                return left
    return None


def _pattern_distance(pattern: str, postal_code: str) -> int:
    code = int(postal_code)
    if pattern.endswith("*"):
        prefix = pattern[:-1]
        low = int(prefix.ljust(5, "0"))
        high = int(prefix.ljust(5, "9"))
        if low <= code <= high:
            return 0
        return min(abs(code - low), abs(code - high))
    return abs(code - int(pattern))


def _nearby_zones(
    zones: list[DeliveryZoneInfo], postal_code: str, limit: int
) -> list[DeliveryZoneInfo]:
    region = postal_code[:REGION_PREFIX_LENGTH]
    ranked: list[tuple[int, int, int, DeliveryZoneInfo]] = []
    for zone in zones:
        distances = [
            _pattern_distance(pattern, postal_code)
            for pattern in zone.postal_patterns
            if pattern.rstrip("*")[:REGION_PREFIX_LENGTH] == region
            and pattern.rstrip("*").isdigit()
        ]
        if distances:
            ranked.append((min(distances), zone.priority, zone.id, zone))
    ranked.sort(key=lambda entry: entry[:3])
    return [entry[3] for entry in ranked[: max(limit, 0)]]


__all__ = [
    "DeliveryZoneInfo",
    "ResolutionStatus",
    "ZoneCatalog",
    "ZoneMatch",
    "ZoneResolution",
    "ZoneRestriction",
    "format_delivery_time",
    "format_delivery_window",
    "normalize_postal_code",
    "resolve_zones",
    "restriction_labels",
    "zone_from_record",
]
