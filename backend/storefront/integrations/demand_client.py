"""HTTP demand-signal source for surge pricing."""

from __future__ import annotations

from datetime import UTC, datetime

import httpx

from storefront.services.errors import PricingUnavailableError
from storefront.services.surge_pricing_service import DemandSignal


class DemandClientError(PricingUnavailableError):
    """Raised when the demand service cannot be read."""


class DemandServiceClient:
    """Reads ``GET /zones/{id}/demand`` from the dispatch service."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Demand service URL is not configured")
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_signal(self, zone_id: int) -> DemandSignal | None:
        try:
            response = await self._client.get(f"/zones/{zone_id}/demand")
        except httpx.HTTPError as exc:
            raise DemandClientError(f"Demand service unreachable: {exc}") from exc
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        if response.is_error:
            raise DemandClientError(f"Demand service returned HTTP {response.status_code}")
        try:
            body = response.json()
            observed_raw = body.get("observed_at")
            observed_at = (
                datetime.fromisoformat(observed_raw) if observed_raw else datetime.now(UTC)
            )
            if observed_at.tzinfo is None:
                observed_at = observed_at.replace(tzinfo=UTC)
            completion_raw = body.get("completion_rate")
            return DemandSignal(
                zone_id=zone_id,
                active_deliveries=int(body["active_deliveries"]),
                available_couriers=int(body["available_couriers"]),
                observed_at=observed_at,
                completion_rate=None if completion_raw is None else float(completion_raw),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise DemandClientError("Demand service returned a malformed signal") from exc
