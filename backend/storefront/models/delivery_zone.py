"""Delivery zone reference data."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import CheckConstraint, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from storefront.db.base import Base
from storefront.models.mixins import ActiveFlagMixin, TimestampMixin

JSONB_TYPE = JSONB().with_variant(JSON(), "sqlite")


class DeliveryZone(TimestampMixin, ActiveFlagMixin, Base):
    """Geographic delivery coverage unit maintained by the zone configuration job.

    ``postal_patterns`` is an ordered list of five-digit ZIPs or ``*``-suffixed
    prefixes. ``restrictions`` maps restriction flag names to booleans.
    """

    __tablename__ = "delivery_zones"
    __table_args__ = (
        CheckConstraint("delivery_fee >= 0", name="ck_delivery_zones_fee"),
        CheckConstraint(
            "min_delivery_minutes <= max_delivery_minutes",
            name="ck_delivery_zones_window",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    postal_patterns: Mapped[list[str]] = mapped_column(
        JSONB_TYPE, nullable=False, default=list
    )
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    min_order_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    min_delivery_minutes: Mapped[int] = mapped_column(nullable=False, default=0)
    max_delivery_minutes: Mapped[int] = mapped_column(nullable=False)
    priority: Mapped[int] = mapped_column(nullable=False, default=1)
    restrictions: Mapped[dict[str, Any]] = mapped_column(
        JSONB_TYPE, nullable=False, default=dict
    )
