"""Address book with geocoding on write."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from dreamsaver.core.config import Settings, get_settings
from dreamsaver.models import Address
from dreamsaver.services.errors import AddressNotFoundError, InvalidRequestError, UnauthorizedError
from dreamsaver.services.geocoding import Geocoder, NominatimGeocoder, geocode_address

logger = logging.getLogger(__name__)

DEFAULT_ZIP = "00000"


@dataclass(slots=True, frozen=True)
class AddressInput:
    name: str
    street: str
    city: str
    state: str | None = None
    zip: str | None = None
    country: str | None = None
    phone: str | None = None
    latitude: float | None = None
    longitude: float | None = None


def create_address(
    session: Session,
    *,
    user_id: str,
    payload: AddressInput,
    geocoder: Geocoder | None = None,
    settings: Settings | None = None,
) -> Address:
    settings = settings or get_settings()
    if not (payload.name and payload.street and payload.city):
        raise InvalidRequestError("Missing required fields (name, street, city)")

    address = Address(
        user_id=user_id,
        name=payload.name,
        street=payload.street,
        city=payload.city,
        state=payload.state or "",
        zip=payload.zip or DEFAULT_ZIP,
        country=payload.country or settings.default_country,
        phone=payload.phone or "",
        latitude=payload.latitude,
        longitude=payload.longitude,
    )
    if address.latitude is None or address.longitude is None:
        resolver = geocoder or NominatimGeocoder(settings=settings)
        coordinates = geocode_address(
            resolver,
            street=address.street,
            city=address.city,
            state=address.state,
            country=address.country,
        )
        if coordinates is not None:
            address.latitude = coordinates.latitude
            address.longitude = coordinates.longitude
        else:
            address.latitude = address.longitude = None

    session.add(address)
    session.commit()
    session.refresh(address)
    logger.info("address saved", extra={"address_id": address.id, "geocoded": address.latitude is not None})
    return address


def list_addresses(session: Session, *, user_id: str) -> list[Address]:
    return list(
        session.scalars(select(Address).where(Address.user_id == user_id).order_by(Address.created_at.desc()))
    )


def delete_address(session: Session, *, address_id: str, user_id: str) -> None:
    address = session.get(Address, address_id)
    if address is None:
        raise AddressNotFoundError(f"Address '{address_id}' was not found")
    if address.user_id != user_id:
        raise UnauthorizedError("You do not own this address")
    session.delete(address)
    session.commit()


__all__ = ["AddressInput", "DEFAULT_ZIP", "create_address", "delete_address", "list_addresses"]
