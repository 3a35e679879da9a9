"""Test fixtures for the storefront checkout backend."""
from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("APP_ENV", "test")

from storefront.core.config import get_settings
from storefront.core.settings import CheckoutSettings, SurgeSettings
from storefront.db.base import Base
from storefront.db.session import dispose_engine, get_sessionmaker
from storefront.integrations import OrderServiceClient
from storefront.main import app
from storefront.models import DeliveryZone, PickupLocation
from storefront.services import checkout_registry
from storefront.services.surge_pricing_service import (
    DemandSignal,
    StaticDemandSignalSource,
    SurgePricingEngine,
)
from storefront.services.zone_service import (
    DeliveryZoneInfo,
    ZoneCatalog,
    ZoneRestriction,
)

# Tuesday mid-morning: outside every time-of-day surge window.
START = datetime(2025, 6, 3, 9, 0, tzinfo=UTC)


def _zip_range(first: int, last: int) -> list[str]:
    return [f"{code:05d}" for code in range(first, last + 1)]


ZONE_ROWS: list[dict[str, object]] = [
    {
        "id": 1,
        "name": "Downtown Core",
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
        "postal_patterns": _zip_range(10001, 10003),
        "delivery_fee": Decimal("15.99"),
        "min_order_amount": Decimal("100.00"),
        "min_delivery_minutes": 30,
        "max_delivery_minutes": 60,
        "priority": 0,
        "restrictions": {"requires_signature": True},
    },
]

PICKUP_ROWS: list[dict[str, object]] = [
    {
        "id": 1,
        "name": "Main Store",
        "address": "789 Oak St",
        "city": "New York",
        "state": "NY",
        "postal_code": "10003",
        "hours": "Mon-Sat 9am-9pm",
    },
    {
        "id": 2,
        "name": "Downtown Branch",
        "address": "101 Pine Ave",
        "city": "New York",
        "state": "NY",
        "postal_code": "10004",
    },
]


def zone_info(row: dict[str, object]) -> DeliveryZoneInfo:
    return DeliveryZoneInfo(
        id=row["id"],
        name=row["name"],
        postal_patterns=tuple(row["postal_patterns"]),
        delivery_fee=row["delivery_fee"],
        min_order_amount=row["min_order_amount"],
        min_delivery_minutes=row["min_delivery_minutes"],
        max_delivery_minutes=row["max_delivery_minutes"],
        priority=row["priority"],
        restrictions=frozenset(
            ZoneRestriction(name) for name, enabled in row["restrictions"].items() if enabled
        ),
    )


class FakeClock:
    """Manually advanced clock for TTL and signal-age tests."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def _make_signal(
    zone_id: int,
    active: int,
    couriers: int,
    observed_at: datetime = START,
    completion_rate: float | None = None,
) -> DemandSignal:
    return DemandSignal(
        zone_id=zone_id,
        active_deliveries=active,
        available_couriers=couriers,
        observed_at=observed_at,
        completion_rate=completion_rate,
    )


@pytest.fixture()
def make_signal():
    """Factory for demand signals observed at the fake clock start."""
    return _make_signal


@pytest.fixture()
def catalog() -> ZoneCatalog:
    return ZoneCatalog(zone_info(row) for row in ZONE_ROWS)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def demand_source() -> StaticDemandSignalSource:
    return StaticDemandSignalSource()


@pytest.fixture()
def pricing_engine(
    demand_source: StaticDemandSignalSource, clock: FakeClock
) -> SurgePricingEngine:
    return SurgePricingEngine(demand_source, SurgeSettings(), clock=clock)


@pytest.fixture()
def checkout_settings() -> CheckoutSettings:
    return CheckoutSettings(order_submit_timeout_seconds=0.5)


@pytest.fixture(autouse=True)
def _clear_checkout_registry() -> Iterator[None]:
    yield
    checkout_registry.clear()


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url, future=True)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


@pytest_asyncio.fixture()
async def app_context(
    reset_database: None,
    db_url: str,
    pricing_engine: SurgePricingEngine,
    demand_source: StaticDemandSignalSource,
    clock: FakeClock,
) -> AsyncIterator[dict[str, object]]:
    """Yield an async client backed by seeded zones and a local order submitter."""
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        for row in ZONE_ROWS:
            session.add(DeliveryZone(**row))
        for row in PICKUP_ROWS:
            session.add(PickupLocation(**row))
        session.add(
            DeliveryZone(
                id=99,
                name="Retired Zone",
                postal_patterns=["20001"],
                delivery_fee=Decimal("4.99"),
                min_order_amount=Decimal("0"),
                min_delivery_minutes=30,
                max_delivery_minutes=60,
                priority=1,
                restrictions={},
                is_active=False,
            )
        )
        await session.commit()

    submitter = OrderServiceClient(None)
    app.state.pricing_engine = pricing_engine
    app.state.order_submitter = submitter

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield {
            "client": client,
            "demand_source": demand_source,
            "clock": clock,
            "submitter": submitter,
            "engine": pricing_engine,
        }
