"""Schemas for the address book."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AddressCreate(BaseModel):
    name: str = Field(..., max_length=255)
    street: str = Field(..., max_length=255)
    city: str = Field(..., max_length=128)
    state: str | None = Field(default=None, max_length=128)
    zip: str | None = Field(default=None, max_length=16)
    country: str | None = Field(default=None, max_length=128)
    phone: str | None = Field(default=None, max_length=32)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class AddressRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    street: str
    city: str
    state: str
    zip: str
    country: str
    phone: str
    latitude: float | None
    longitude: float | None


__all__ = ["AddressCreate", "AddressRead"]
