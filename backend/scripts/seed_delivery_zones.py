"""Seed the default delivery zones and pickup locations."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

from sqlalchemy import select

from storefront.db.session import create_schema, get_sessionmaker
from storefront.models import DeliveryZone, PickupLocation


def _zip_range(first: int, last: int) -> list[str]:
    return [f"{code:05d}" for code in range(first, last + 1)]


ZONES: list[dict[str, Any]] = [
    {
        "id": 1,
        "name": "Downtown Core",
        "description": "Central business district with same-day delivery",
        "postal_patterns": _zip_range(10001, 10005),
        "delivery_fee": Decimal("5.99"),
        "min_order_amount": Decimal("25.00"),
        "min_delivery_minutes": 60,
        "max_delivery_minutes": 120,
        "priority": 1,
        "restrictions": {"requires_signature": True},
    },
    {
        "id": 2,
        "name": "Metropolitan",
        "description": "Inner city neighborhoods",
        "postal_patterns": _zip_range(10006, 10015),
        "delivery_fee": Decimal("9.99"),
        "min_order_amount": Decimal("35.00"),
        "min_delivery_minutes": 120,
        "max_delivery_minutes": 240,
        "priority": 2,
        "restrictions": {},
    },
    {
        "id": 3,
        "name": "Suburban",
        "description": "Suburban residential areas",
        "postal_patterns": _zip_range(10016, 10025),
        "delivery_fee": Decimal("14.99"),
        "min_order_amount": Decimal("50.00"),
        "min_delivery_minutes": 240,
        "max_delivery_minutes": 480,
        "priority": 3,
        "restrictions": {"no_weekend_delivery": True},
    },
    {
        "id": 4,
        "name": "Extended",
        "description": "Outlying areas with next-day delivery",
        "postal_patterns": _zip_range(10026, 10035),
        "delivery_fee": Decimal("19.99"),
        "min_order_amount": Decimal("75.00"),
        "min_delivery_minutes": 720,
        "max_delivery_minutes": 1440,
        "priority": 4,
        "restrictions": {"no_weekend_delivery": True, "no_evening_delivery": True},
    },
    {
        "id": 5,
        "name": "Premium Express",
        "description": "One-hour express delivery downtown",
        "postal_patterns": _zip_range(10001, 10003),
        "delivery_fee": Decimal("15.99"),
        "min_order_amount": Decimal("100.00"),
        "min_delivery_minutes": 30,
        "max_delivery_minutes": 60,
        "priority": 0,
        "restrictions": {"requires_signature": True},
    },
]

PICKUP_LOCATIONS: list[dict[str, Any]] = [
    {
        "id": 1,
        "name": "Main Store",
        "address": "789 Oak St",
        "city": "New York",
        "state": "NY",
        "postal_code": "10003",
        "hours": "Mon-Sat 9am-9pm, Sun 10am-6pm",
    },
    {
        "id": 2,
        "name": "Downtown Branch",
        "address": "101 Pine Ave",
        "city": "New York",
        "state": "NY",
        "postal_code": "10004",
        "hours": "Mon-Fri 8am-8pm",
    },
    {
        "id": 3,
        "name": "Airport Branch",
        "address": "JFK Terminal 4",
        "city": "Jamaica",
        "state": "NY",
        "postal_code": "11430",
        "hours": "Daily 6am-11pm",
    },
]


async def seed_reference_data() -> None:
    await create_schema()
    sessionmaker = get_sessionmaker()
    async with sessionmaker() as session:
        existing_zones = set(
            (await session.execute(select(DeliveryZone.id))).scalars().all()
        )
        existing_pickups = set(
            (await session.execute(select(PickupLocation.id))).scalars().all()
        )

        zones_created = 0
        for row in ZONES:
            if row["id"] not in existing_zones:
                session.add(DeliveryZone(**row))
                zones_created += 1

        pickups_created = 0
        for row in PICKUP_LOCATIONS:
            if row["id"] not in existing_pickups:
                session.add(PickupLocation(**row))
                pickups_created += 1

        await session.commit()
        print(
            f"Seeded {zones_created} delivery zones and {pickups_created} pickup locations."
        )


if __name__ == "__main__":
    asyncio.run(seed_reference_data())
