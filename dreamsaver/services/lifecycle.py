"""Status transition tables for goals, escrows, deliveries and refund requests."""
from __future__ import annotations

import enum
from typing import Any

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from dreamsaver.models import DeliveryStatus, EscrowStatus, GoalStatus, RefundRequestStatus
from dreamsaver.services.errors import ConcurrencyError, InvalidTransitionError

GOAL_TRANSITIONS: dict[GoalStatus, set[GoalStatus]] = {
    GoalStatus.SAVED: {GoalStatus.ACTIVE, GoalStatus.COMPLETED, GoalStatus.CANCELLED},
    GoalStatus.ACTIVE: {GoalStatus.COMPLETED, GoalStatus.CANCELLED},
    GoalStatus.COMPLETED: {GoalStatus.REDEEMED},
    GoalStatus.CANCELLED: {GoalStatus.REFUNDED},
}

ESCROW_TRANSITIONS: dict[EscrowStatus, set[EscrowStatus]] = {
    EscrowStatus.HELD: {EscrowStatus.RELEASED, EscrowStatus.REFUNDED},
}

# Deliveries only move forward, but may skip intermediate steps.
DELIVERY_TRANSITIONS: dict[DeliveryStatus, set[DeliveryStatus]] = {
    DeliveryStatus.PENDING: {DeliveryStatus.DISPATCHED, DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED},
    DeliveryStatus.DISPATCHED: {DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED},
    DeliveryStatus.IN_TRANSIT: {DeliveryStatus.DELIVERED},
}

REFUND_REQUEST_TRANSITIONS: dict[RefundRequestStatus, set[RefundRequestStatus]] = {
    RefundRequestStatus.REQUESTED: {RefundRequestStatus.APPROVED},
}

_TABLES: dict[type[enum.Enum], dict[Any, set[Any]]] = {
    GoalStatus: GOAL_TRANSITIONS,
    EscrowStatus: ESCROW_TRANSITIONS,
    DeliveryStatus: DELIVERY_TRANSITIONS,
    RefundRequestStatus: REFUND_REQUEST_TRANSITIONS,
}


def can_transition(current: enum.Enum, new_status: enum.Enum) -> bool:
    table = _TABLES[type(new_status)]
    return new_status in table.get(current, set())


def transition(record: Any, new_status: enum.Enum) -> bool:
    """Move ``record.status`` to ``new_status`` if the table allows it.

    Returns ``False`` without touching the record when it already has the
    requested status.
    """

    current = record.status
    if current == new_status:
        return False
    if not can_transition(current, new_status):
        raise InvalidTransitionError(
            f"Invalid status transition for {type(record).__name__} from {current.value} to {new_status.value}"
        )
    record.status = new_status
    return True


def flush_or_conflict(session: Session) -> None:
    try:
        session.flush()
    except StaleDataError as exc:
        raise ConcurrencyError("Record was modified concurrently; retry the request") from exc


__all__ = [
    "DELIVERY_TRANSITIONS",
    "ESCROW_TRANSITIONS",
    "GOAL_TRANSITIONS",
    "REFUND_REQUEST_TRANSITIONS",
    "can_transition",
    "flush_or_conflict",
    "transition",
]
