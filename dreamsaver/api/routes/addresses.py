"""Address book endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from dreamsaver.api.deps import get_db_session, http_error
from dreamsaver.api.routes.auth import AuthenticatedUser, get_current_user
from dreamsaver.core.config import get_settings
from dreamsaver.schemas import AddressCreate, AddressRead
from dreamsaver.services.addresses import AddressInput, create_address, delete_address, list_addresses
from dreamsaver.services.errors import GoalServiceError
from dreamsaver.services.geocoding import Geocoder, NominatimGeocoder

router = APIRouter(prefix="/addresses")


def get_geocoder() -> Geocoder:
    return NominatimGeocoder(settings=get_settings())


@router.get("", response_model=list[AddressRead])
def list_my_addresses(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> list[AddressRead]:
    return [AddressRead.model_validate(address) for address in list_addresses(session, user_id=user.user_id)]


@router.post("", response_model=AddressRead, status_code=status.HTTP_201_CREATED)
def add_address(
    payload: AddressCreate,
    session: Session = Depends(get_db_session),
    geocoder: Geocoder = Depends(get_geocoder),
    user: AuthenticatedUser = Depends(get_current_user),
) -> AddressRead:
    try:
        address = create_address(
            session,
            user_id=user.user_id,
            payload=AddressInput(**payload.model_dump()),
            geocoder=geocoder,
        )
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return AddressRead.model_validate(address)


@router.delete("/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_address(
    address_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> Response:
    try:
        delete_address(session, address_id=address_id, user_id=user.user_id)
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["get_geocoder", "router"]
