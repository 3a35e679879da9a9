"""HTTP client for the order submission endpoint with a local fallback."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from storefront.services.checkout_service import (
    OrderSubmission,
    generate_order_reference,
)
from storefront.services.errors import SubmissionError

logger = logging.getLogger(__name__)


class OrderClientError(SubmissionError):
    """Raised when the order service rejects or fails a submission."""


class OrderServiceClient:
    """Posts finalized checkouts to the order service.

    Without a ``base_url`` the client runs in local mode: submissions are kept
    in memory and assigned a generated reference, which keeps development and
    demo environments usable without the order service.
    """

    def __init__(
        self,
        base_url: str | None,
        *,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") if base_url else None
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport
        self.local_orders: dict[str, dict[str, Any]] = {}

    @property
    def is_local(self) -> bool:
        return self._base_url is None

    async def submit_order(self, submission: OrderSubmission) -> str | None:
        payload = submission.to_payload()
        if self._base_url is None:
            reference = generate_order_reference()
            self.local_orders[reference] = payload
            logger.info("Recorded local order %s", reference)
            return reference

        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            try:
                response = await client.post("/orders", json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                detail = _error_detail(exc.response)
                raise OrderClientError(f"Order was rejected: {detail}") from exc
            except httpx.HTTPError as exc:
                raise OrderClientError("Order service is unavailable") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise OrderClientError("Order service returned an invalid response") from exc
        reference = body.get("order_reference") if isinstance(body, dict) else None
        return str(reference) if reference else None


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return f"HTTP {response.status_code}"
