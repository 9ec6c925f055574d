"""Delivery and delivery tracking ORM models."""
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, String, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dreamsaver.models.base import Base, TimestampMixin, new_id, utcnow


class DeliveryStatus(str, enum.Enum):
    PENDING = "PENDING"
    DISPATCHED = "DISPATCHED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"


class Delivery(TimestampMixin, Base):
    """Physical fulfilment of a redeemed goal."""

    __tablename__ = "deliveries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    goal_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    status: Mapped[DeliveryStatus] = mapped_column(
        SAEnum(DeliveryStatus, name="delivery_status"), nullable=False, default=DeliveryStatus.PENDING
    )
    shipping_address: Mapped[str] = mapped_column(String(512), nullable=False)
    destination_lat: Mapped[float | None] = mapped_column(Float)
    destination_lng: Mapped[float | None] = mapped_column(Float)
    estimated_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    tracking_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    # Current driver position; null hides the driver on the map.
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)
    location: Mapped[str | None] = mapped_column(String(255))

    goal = relationship("Goal", back_populates="delivery")
    trackings = relationship(
        "DeliveryTracking",
        back_populates="delivery",
        order_by="DeliveryTracking.recorded_at.desc()",
        cascade="all, delete-orphan",
    )


class DeliveryTracking(Base):
    """Append-only location/status snapshot for a delivery."""

    __tablename__ = "delivery_trackings"
    __table_args__ = (Index("ix_delivery_trackings_delivery_id", "delivery_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    delivery_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("deliveries.id", ondelete="CASCADE"), nullable=False
    )
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False, default="En Route")
    status: Mapped[DeliveryStatus] = mapped_column(
        SAEnum(DeliveryStatus, name="delivery_status"), nullable=False
    )
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    delivery = relationship("Delivery", back_populates="trackings")


__all__ = ["Delivery", "DeliveryStatus", "DeliveryTracking"]
