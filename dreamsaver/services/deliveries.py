"""Redemption of funded goals and delivery tracking."""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from dreamsaver.db.session import serializable_transaction
from dreamsaver.models import (
    Address,
    Delivery,
    DeliveryStatus,
    DeliveryTracking,
    Goal,
    GoalStatus,
    Product,
    Store,
    UserRole,
)
from dreamsaver.obs import traced
from dreamsaver.services.errors import (
    DeliveryNotFoundError,
    GoalNotCompletedError,
    InvalidAddressError,
    InvalidStateError,
    UnauthorizedError,
)
from dreamsaver.services.goals import lock_goal
from dreamsaver.services.lifecycle import flush_or_conflict, transition

logger = logging.getLogger(__name__)

DEFAULT_LOCATION_LABEL = "En Route"
CUSTOMER_CONFIRMABLE = frozenset({DeliveryStatus.DISPATCHED, DeliveryStatus.IN_TRANSIT})


@dataclass(slots=True, frozen=True)
class Actor:
    """Caller identity used for delivery access checks."""

    user_id: str
    role: UserRole


@dataclass(slots=True, frozen=True)
class StoreDelivery:
    """A delivery in a seller's queue with who it is for and where it was last seen."""

    delivery: Delivery
    customer_name: str | None
    product_name: str | None
    latest_tracking: DeliveryTracking | None


def new_tracking_number() -> str:
    return f"TRK-{secrets.token_hex(5).upper()}"


@traced("goal.redeem")
def redeem(
    session: Session,
    *,
    goal_id: str,
    user_id: str,
    address_id: str,
    delivery_date: datetime | None = None,
) -> Delivery:
    """Turn a COMPLETED goal into a PENDING delivery. Repeated calls return the same delivery."""

    with serializable_transaction(session):
        goal = lock_goal(session, goal_id)
        if goal.user_id != user_id:
            raise UnauthorizedError("You do not own this goal")

        delivery = session.scalar(select(Delivery).where(Delivery.goal_id == goal.id))
        if delivery is None:
            if goal.status != GoalStatus.COMPLETED:
                raise GoalNotCompletedError(f"Goal '{goal_id}' is {goal.status.value}; only completed goals can be redeemed")

            address = session.get(Address, address_id)
            if address is None or address.user_id != user_id:
                raise InvalidAddressError(f"Address '{address_id}' is not one of your saved addresses")

            tracking_number = new_tracking_number()
            while session.scalar(select(Delivery.id).where(Delivery.tracking_number == tracking_number)):
                tracking_number = new_tracking_number()

            delivery = Delivery(
                goal_id=goal.id,
                status=DeliveryStatus.PENDING,
                shipping_address=address.formatted(),
                destination_lat=address.latitude,
                destination_lng=address.longitude,
                estimated_date=delivery_date,
                tracking_number=tracking_number,
            )
            session.add(delivery)
            transition(goal, GoalStatus.REDEEMED)
            flush_or_conflict(session)
            logger.info("goal redeemed", extra={"goal_id": goal.id, "tracking_number": tracking_number})

    session.refresh(delivery)
    return delivery


def _load_delivery(session: Session, delivery_id: str, *, for_update: bool = False) -> Delivery:
    statement = select(Delivery).where(Delivery.id == delivery_id)
    if for_update:
        statement = statement.with_for_update()
    delivery = session.scalar(statement)
    if delivery is None:
        raise DeliveryNotFoundError(f"Delivery '{delivery_id}' was not found")
    return delivery


def _fulfilling_store_owner(session: Session, delivery: Delivery) -> str | None:
    return session.scalar(
        select(Store.user_id)
        .join(Product, Product.store_id == Store.id)
        .join(Goal, Goal.product_id == Product.id)
        .where(Goal.id == delivery.goal_id)
    )


def _goal_owner(session: Session, delivery: Delivery) -> str | None:
    return session.scalar(select(Goal.user_id).where(Goal.id == delivery.goal_id))


def _ensure_can_manage(session: Session, delivery: Delivery, actor: Actor) -> None:
    if actor.role == UserRole.ADMIN:
        return
    if actor.role == UserRole.SELLER and _fulfilling_store_owner(session, delivery) == actor.user_id:
        return
    raise UnauthorizedError("Only the fulfilling store or an admin can update this delivery")


def get_delivery(session: Session, *, delivery_id: str, actor: Actor) -> Delivery:
    """Delivery with its tracking history, newest first."""

    delivery = session.scalar(
        select(Delivery).options(selectinload(Delivery.trackings)).where(Delivery.id == delivery_id)
    )
    if delivery is None:
        raise DeliveryNotFoundError(f"Delivery '{delivery_id}' was not found")
    if actor.role != UserRole.ADMIN and actor.user_id not in (
        _goal_owner(session, delivery),
        _fulfilling_store_owner(session, delivery),
    ):
        raise UnauthorizedError("You cannot view this delivery")
    return delivery


@traced("delivery.status")
def update_delivery_status(
    session: Session,
    *,
    delivery_id: str,
    new_status: DeliveryStatus,
    actor: Actor,
) -> Delivery:
    """Move a delivery forward. Coordinates are left untouched."""

    with serializable_transaction(session):
        delivery = _load_delivery(session, delivery_id, for_update=True)
        _ensure_can_manage(session, delivery, actor)
        if transition(delivery, new_status):
            if new_status == DeliveryStatus.DELIVERED:
                delivery.delivered_at = datetime.now(timezone.utc)
            flush_or_conflict(session)
            logger.info(
                "delivery status updated",
                extra={"delivery_id": delivery.id, "delivery_status": new_status.value},
            )

    session.refresh(delivery)
    return delivery


def record_location(
    session: Session,
    *,
    delivery_id: str,
    latitude: float | None,
    longitude: float | None,
    label: str | None = None,
    actor: Actor,
) -> Delivery:
    """Update the driver position and append a tracking point when both coordinates are known."""

    with serializable_transaction(session):
        delivery = _load_delivery(session, delivery_id, for_update=True)
        _ensure_can_manage(session, delivery, actor)

        delivery.latitude = latitude
        delivery.longitude = longitude
        if label is not None:
            delivery.location = label
        if latitude is not None and longitude is not None:
            session.add(
                DeliveryTracking(
                    delivery_id=delivery.id,
                    latitude=latitude,
                    longitude=longitude,
                    location=label or DEFAULT_LOCATION_LABEL,
                    status=delivery.status,
                )
            )
        flush_or_conflict(session)

    session.refresh(delivery)
    return delivery


def list_store_deliveries(session: Session, *, owner_user_id: str) -> list[StoreDelivery]:
    """Deliveries of the seller's products, newest first. A seller without a store has none."""

    store_id = session.scalar(select(Store.id).where(Store.user_id == owner_user_id))
    if store_id is None:
        return []

    deliveries = session.scalars(
        select(Delivery)
        .join(Goal, Goal.id == Delivery.goal_id)
        .join(Product, Product.id == Goal.product_id)
        .options(
            selectinload(Delivery.goal).selectinload(Goal.user),
            selectinload(Delivery.goal).selectinload(Goal.product),
            selectinload(Delivery.trackings),
        )
        .where(Product.store_id == store_id)
        .order_by(Delivery.created_at.desc(), Delivery.id)
    ).all()

    queue: list[StoreDelivery] = []
    for delivery in deliveries:
        goal = delivery.goal
        queue.append(
            StoreDelivery(
                delivery=delivery,
                customer_name=goal.user.name if goal.user is not None else None,
                product_name=goal.product.name if goal.product is not None else None,
                latest_tracking=delivery.trackings[0] if delivery.trackings else None,
            )
        )
    return queue

def confirm_delivered(session: Session, *, delivery_id: str, user_id: str) -> Delivery:
    """Customer confirmation of receipt. Escrow release stays an admin decision."""

    with serializable_transaction(session):
        delivery = _load_delivery(session, delivery_id, for_update=True)
        if _goal_owner(session, delivery) != user_id:
            raise UnauthorizedError("Only the customer who redeemed the goal can confirm delivery")
        if delivery.status not in CUSTOMER_CONFIRMABLE:
            raise InvalidStateError(
                f"Delivery '{delivery_id}' is {delivery.status.value}; it must be dispatched before confirmation"
            )
        transition(delivery, DeliveryStatus.DELIVERED)
        delivery.delivered_at = datetime.now(timezone.utc)
        flush_or_conflict(session)

    session.refresh(delivery)
    logger.info("delivery confirmed by customer", extra={"delivery_id": delivery.id})
    return delivery


__all__ = [
    "Actor",
    "CUSTOMER_CONFIRMABLE",
    "DEFAULT_LOCATION_LABEL",
    "StoreDelivery",
    "confirm_delivered",
    "get_delivery",
    "list_store_deliveries",
    "new_tracking_number",
    "record_location",
    "redeem",
    "update_delivery_status",
]
