"""Schemas for redemption and delivery tracking."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from dreamsaver.models import DeliveryStatus


class RedeemRequest(BaseModel):
    address_id: str = Field(..., min_length=1, max_length=36)
    delivery_date: datetime | None = None


class DeliveryTrackingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    latitude: float
    longitude: float
    location: str
    status: DeliveryStatus
    recorded_at: datetime


class DeliveryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    goal_id: str
    status: DeliveryStatus
    shipping_address: str
    destination_lat: float | None
    destination_lng: float | None
    estimated_date: datetime | None
    delivered_at: datetime | None
    tracking_number: str
    latitude: float | None
    longitude: float | None
    location: str | None


class DeliveryDetail(DeliveryRead):
    trackings: list[DeliveryTrackingRead] = Field(default_factory=list)


class StoreDeliveryRead(DeliveryRead):
    customer_name: str | None
    product_name: str | None
    latest_tracking: DeliveryTrackingRead | None


class DeliveryStatusUpdate(BaseModel):
    status: DeliveryStatus


class LocationUpdate(BaseModel):
    """Driver position; sending nulls hides the driver from the map."""

    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    location: str | None = Field(default=None, max_length=255)


__all__ = [
    "DeliveryDetail",
    "DeliveryRead",
    "DeliveryStatusUpdate",
    "DeliveryTrackingRead",
    "LocationUpdate",
    "RedeemRequest",
    "StoreDeliveryRead",
]
