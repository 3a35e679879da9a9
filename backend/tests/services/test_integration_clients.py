"""Tests for the order and demand service clients."""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime
from decimal import Decimal

import httpx
import pytest

from storefront.core.settings import SurgeSettings
from storefront.integrations import (
    DemandClientError,
    DemandServiceClient,
    OrderClientError,
    OrderServiceClient,
)
from storefront.services.checkout_service import (
    Address,
    FulfillmentMethod,
    LineItem,
    OrderSubmission,
    OrderTotals,
    PaymentMethodInfo,
)
from storefront.services.errors import PricingUnavailableError, SubmissionError
from storefront.services.surge_pricing_service import SurgePricingEngine


def _submission() -> OrderSubmission:
    return OrderSubmission(
        items=(LineItem(id=1, name="Lamp", unit_price=Decimal("45.00"), quantity=2),),
        fulfillment_method=FulfillmentMethod.DELIVERY,
        payment_method=PaymentMethodInfo(id=7, kind="card", display_name="Visa", last_four="4242"),
        totals=OrderTotals(
            subtotal=Decimal("90.00"),
            delivery_fee=Decimal("9.99"),
            tax=Decimal("7.20"),
            total=Decimal("107.19"),
        ),
        address=Address(id=4, postal_code="10010", line1="1 Park Ave", city="New York", state="NY"),
        zone_id=2,
        surge_multiplier=Decimal("1.00"),
    )


@pytest.mark.asyncio
async def test_local_mode_records_orders() -> None:
    client = OrderServiceClient(None)

    reference = await client.submit_order(_submission())

    assert client.is_local
    assert reference is not None
    assert client.local_orders[reference]["totals"]["total"] == "107.19"


@pytest.mark.asyncio
async def test_remote_submission_posts_payload() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json={"order_reference": "ORD-20250602-REMOTE01"})

    client = OrderServiceClient(
        "http://orders.internal/", transport=httpx.MockTransport(handler)
    )

    reference = await client.submit_order(_submission())

    assert reference == "ORD-20250602-REMOTE01"
    assert captured["path"] == "/orders"
    body = captured["body"]
    assert body["address_id"] == 4
    assert body["zone_id"] == 2
    assert body["items"][0]["unit_price"] == "45.00"


@pytest.mark.asyncio
async def test_remote_rejection_raises_submission_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json={"detail": "Card declined"})

    client = OrderServiceClient("http://orders.internal", transport=httpx.MockTransport(handler))

    with pytest.raises(OrderClientError, match="Card declined") as excinfo:
        await client.submit_order(_submission())
    assert isinstance(excinfo.value, SubmissionError)


@pytest.mark.asyncio
async def test_unreachable_order_service() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = OrderServiceClient("http://orders.internal", transport=httpx.MockTransport(handler))

    with pytest.raises(OrderClientError, match="unavailable"):
        await client.submit_order(_submission())


def _demand_client(handler) -> DemandServiceClient:
    return DemandServiceClient("http://dispatch.internal", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_demand_client_reads_signal() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/zones/2/demand"
        return httpx.Response(
            200,
            json={
                "active_deliveries": 12,
                "available_couriers": 4,
                "completion_rate": 0.88,
                "observed_at": "2025-06-02T12:00:00+00:00",
            },
        )

    client = _demand_client(handler)
    signal = await client.get_signal(2)
    await client.aclose()

    assert signal is not None
    assert signal.load_ratio == 3.0
    assert signal.completion_rate == 0.88
    assert signal.observed_at == datetime(2025, 6, 2, 12, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_demand_client_completion_rate_is_optional() -> None:
    client = _demand_client(
        lambda request: httpx.Response(
            200, json={"active_deliveries": 3, "available_couriers": 3}
        )
    )
    signal = await client.get_signal(2)
    await client.aclose()

    assert signal is not None
    assert signal.completion_rate is None
    assert signal.observed_at.tzinfo is not None


@pytest.mark.asyncio
async def test_demand_client_unknown_zone_returns_none() -> None:
    client = _demand_client(lambda request: httpx.Response(404))
    assert await client.get_signal(77) is None
    await client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(503),
        httpx.Response(200, json={"active_deliveries": "many"}),
        httpx.Response(200, text="not json"),
    ],
)
async def test_demand_client_errors(response: httpx.Response) -> None:
    client = _demand_client(lambda request: response)
    with pytest.raises(DemandClientError):
        await client.get_signal(2)
    await client.aclose()


@pytest.mark.asyncio
async def test_demand_client_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _demand_client(handler)
    with pytest.raises(DemandClientError, match="unreachable"):
        await client.get_signal(2)
    await client.aclose()


@pytest.mark.asyncio
async def test_slow_demand_service_leaves_the_loop_free(clock) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.2)
        return httpx.Response(200, json={"active_deliveries": 10, "available_couriers": 5})

    client = _demand_client(handler)
    engine = SurgePricingEngine(client, SurgeSettings(), clock=clock)
    ticks = 0

    async def _ticker() -> None:
        nonlocal ticks
        while True:
            await asyncio.sleep(0.02)
            ticks += 1

    ticker = asyncio.create_task(_ticker())
    try:
        result = await engine.get_price(2, "9.99")
    finally:
        ticker.cancel()
        await client.aclose()

    assert ticks >= 3
    assert result.zone_id == 2


@pytest.mark.asyncio
async def test_engine_falls_back_when_demand_service_fails(clock) -> None:
    client = _demand_client(lambda request: httpx.Response(500))
    engine = SurgePricingEngine(client, SurgeSettings(), clock=clock)

    result = await engine.get_price(2, "9.99")
    await client.aclose()

    assert isinstance(DemandClientError("x"), PricingUnavailableError)
    assert result.multiplier == Decimal("1.00")
    assert result.surge_price == Decimal("9.99")


def test_demand_client_requires_url() -> None:
    with pytest.raises(ValueError):
        DemandServiceClient("")
