"""Integration shortcuts."""

from .demand_client import DemandClientError, DemandServiceClient
from .order_client import OrderClientError, OrderServiceClient

__all__ = [
    "DemandClientError",
    "DemandServiceClient",
    "OrderClientError",
    "OrderServiceClient",
]
