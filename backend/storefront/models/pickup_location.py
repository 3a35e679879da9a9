"""Pickup point directory entries."""

from __future__ import annotations

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from storefront.db.base import Base
from storefront.models.mixins import ActiveFlagMixin, TimestampMixin


class PickupLocation(TimestampMixin, ActiveFlagMixin, Base):
    """Store or locker where customers collect pickup orders."""

    __tablename__ = "pickup_locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(120), nullable=False)
    state: Mapped[str] = mapped_column(String(32), nullable=False)
    postal_code: Mapped[str] = mapped_column(String(10), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    hours: Mapped[str | None] = mapped_column(String(255), nullable=True)
