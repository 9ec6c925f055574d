"""Delivery tracking endpoints for customers, sellers and admins."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dreamsaver.api.deps import get_db_session, http_error
from dreamsaver.api.routes.auth import AuthenticatedUser, get_current_user, require_role
from dreamsaver.models import UserRole
from dreamsaver.schemas import DeliveryDetail, DeliveryRead, DeliveryStatusUpdate, LocationUpdate
from dreamsaver.services.deliveries import (
    confirm_delivered,
    get_delivery,
    record_location,
    update_delivery_status,
)
from dreamsaver.services.errors import GoalServiceError

router = APIRouter(prefix="/deliveries")

_fulfilment_roles = require_role(UserRole.SELLER, UserRole.ADMIN)


@router.get("/{delivery_id}", response_model=DeliveryDetail)
def read_delivery(
    delivery_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> DeliveryDetail:
    try:
        delivery = get_delivery(session, delivery_id=delivery_id, actor=user.as_actor())
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return DeliveryDetail.model_validate(delivery)


@router.post("/{delivery_id}/status", response_model=DeliveryRead)
def change_delivery_status(
    delivery_id: str,
    payload: DeliveryStatusUpdate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(_fulfilment_roles),
) -> DeliveryRead:
    try:
        delivery = update_delivery_status(
            session,
            delivery_id=delivery_id,
            new_status=payload.status,
            actor=user.as_actor(),
        )
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return DeliveryRead.model_validate(delivery)


@router.post("/{delivery_id}/location", response_model=DeliveryRead)
def update_location(
    delivery_id: str,
    payload: LocationUpdate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(_fulfilment_roles),
) -> DeliveryRead:
    try:
        delivery = record_location(
            session,
            delivery_id=delivery_id,
            latitude=payload.latitude,
            longitude=payload.longitude,
            label=payload.location,
            actor=user.as_actor(),
        )
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return DeliveryRead.model_validate(delivery)


@router.post("/{delivery_id}/confirm", response_model=DeliveryRead)
def confirm_receipt(
    delivery_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> DeliveryRead:
    try:
        delivery = confirm_delivered(session, delivery_id=delivery_id, user_id=user.user_id)
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return DeliveryRead.model_validate(delivery)


__all__ = ["router"]
