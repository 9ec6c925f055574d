"""Goal and price lock lifecycle, including cancellation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from dreamsaver.core.config import Settings, get_settings
from dreamsaver.db.session import serializable_transaction
from dreamsaver.models import (
    LIVE_GOAL_STATUSES,
    Deposit,
    Escrow,
    Goal,
    GoalStatus,
    Notification,
    PriceLock,
    Product,
    RefundRequest,
)
from dreamsaver.models.base import new_id
from dreamsaver.obs import traced
from dreamsaver.services.errors import (
    GoalAlreadyExistsError,
    GoalNotFoundError,
    InvalidAmountError,
    InvalidRequestError,
    InvalidTransitionError,
    ProductNotFoundError,
    RefundAlreadyRequestedError,
    UnauthorizedError,
)
from dreamsaver.services.escrow import ensure_escrow, record_audit
from dreamsaver.services.ledger import ZERO, quantize_money
from dreamsaver.services.lifecycle import flush_or_conflict, transition

logger = logging.getLogger(__name__)

CANCELLATION_REASON = "User cancelled goal"


@dataclass(slots=True, frozen=True)
class SaveGoalResult:
    goal: Goal
    created: bool


@dataclass(slots=True, frozen=True)
class CancellationResult:
    """Outcome of a cancellation: either the goal vanished or a refund request exists."""

    goal_id: str
    deleted: bool
    refund_request: RefundRequest | None = None


def saved_total(session: Session, goal_id: str) -> Decimal:
    """Sum of all deposits for a goal; the only source of truth for ``Goal.saved``."""

    total = session.scalar(select(func.coalesce(func.sum(Deposit.amount), 0)).where(Deposit.goal_id == goal_id))
    return quantize_money(total)


def lock_goal(session: Session, goal_id: str) -> Goal:
    goal = session.scalar(select(Goal).where(Goal.id == goal_id).with_for_update())
    if goal is None:
        raise GoalNotFoundError(f"Goal '{goal_id}' was not found")
    return goal


def _positive_target(target_amount: Decimal | int | float | str) -> Decimal:
    amount = quantize_money(target_amount)
    if amount <= 0:
        raise InvalidAmountError("Target amount must be greater than zero")
    return amount


def _require_live_status(status: GoalStatus) -> None:
    if status not in LIVE_GOAL_STATUSES:
        raise InvalidRequestError(f"A goal can only be saved as ACTIVE or SAVED, not {status.value}")


def find_live_goal(session: Session, *, user_id: str, product_id: str) -> Goal | None:
    return session.scalar(
        select(Goal).where(
            Goal.user_id == user_id,
            Goal.product_id == product_id,
            Goal.status.in_(LIVE_GOAL_STATUSES),
        )
    )


def create_goal(
    session: Session,
    *,
    user_id: str,
    product_id: str,
    target_amount: Decimal | int | float | str,
    target_date: datetime | None = None,
    status: GoalStatus = GoalStatus.ACTIVE,
) -> Goal:
    """Open a goal at the product's current price and lock that price."""

    amount = _positive_target(target_amount)
    _require_live_status(status)

    with serializable_transaction(session):
        product = session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(f"Product '{product_id}' was not found")

        goal = Goal(
            user_id=user_id,
            product_id=product.id,
            target_amount=amount,
            saved=ZERO,
            locked_price=product.price,
            status=status,
            end_date=target_date,
        )
        session.add(goal)
        try:
            session.flush()
        except IntegrityError as exc:
            raise GoalAlreadyExistsError(
                f"User '{user_id}' already has a live goal for product '{product_id}'"
            ) from exc

        session.add(
            PriceLock(
                goal_id=goal.id,
                product_id=product.id,
                store_id=product.store_id,
                locked_price=product.price,
                original_price=product.price,
                locked_by=user_id,
                expires_at=target_date,
            )
        )

    session.refresh(goal)
    logger.info("goal created", extra={"goal_id": goal.id, "user_id": user_id, "product_id": product_id})
    return goal


def update_goal(
    session: Session,
    *,
    goal_id: str,
    user_id: str,
    target_amount: Decimal | int | float | str,
    target_date: datetime | None = None,
    status: GoalStatus | None = None,
) -> Goal:
    """Re-price a live goal and carry the new target date onto its price lock."""

    amount = _positive_target(target_amount)
    if status is not None:
        _require_live_status(status)

    with serializable_transaction(session):
        goal = lock_goal(session, goal_id)
        if goal.user_id != user_id:
            raise UnauthorizedError("You do not own this goal")
        if goal.status not in LIVE_GOAL_STATUSES:
            raise InvalidTransitionError(f"Goal '{goal_id}' is {goal.status.value} and can no longer be edited")
        if amount < saved_total(session, goal.id):
            raise InvalidAmountError("Target amount cannot be lower than the amount already saved")

        if status is not None:
            transition(goal, status)
        goal.target_amount = amount
        goal.end_date = target_date

        price_lock = session.scalar(select(PriceLock).where(PriceLock.goal_id == goal.id))
        if price_lock is not None:
            price_lock.expires_at = target_date
        flush_or_conflict(session)

    session.refresh(goal)
    return goal


def save_goal(
    session: Session,
    *,
    user_id: str,
    product_id: str,
    target_amount: Decimal | int | float | str,
    target_date: datetime | None = None,
    status: GoalStatus = GoalStatus.ACTIVE,
) -> SaveGoalResult:
    """Update the caller's live goal for the product, or open one if there is none."""

    existing = find_live_goal(session, user_id=user_id, product_id=product_id)
    if existing is not None:
        goal = update_goal(
            session,
            goal_id=existing.id,
            user_id=user_id,
            target_amount=target_amount,
            target_date=target_date,
            status=status,
        )
        return SaveGoalResult(goal=goal, created=False)

    goal = create_goal(
        session,
        user_id=user_id,
        product_id=product_id,
        target_amount=target_amount,
        target_date=target_date,
        status=status,
    )
    return SaveGoalResult(goal=goal, created=True)


def get_goal(session: Session, *, goal_id: str, user_id: str) -> Goal:
    goal = session.scalar(
        select(Goal)
        .options(selectinload(Goal.deposits), selectinload(Goal.product), selectinload(Goal.delivery))
        .where(Goal.id == goal_id)
    )
    if goal is None:
        raise GoalNotFoundError(f"Goal '{goal_id}' was not found")
    if goal.user_id != user_id:
        raise UnauthorizedError("You do not own this goal")
    return goal


def list_goals(session: Session, *, user_id: str) -> list[Goal]:
    return list(
        session.scalars(
            select(Goal)
            .options(selectinload(Goal.deposits), selectinload(Goal.product), selectinload(Goal.delivery))
            .where(Goal.user_id == user_id)
            .order_by(Goal.created_at.desc())
        )
    )


@traced("goal.cancel")
def cancel_goal(
    session: Session,
    *,
    goal_id: str,
    user_id: str,
    reason: str | None = None,
    settings: Settings | None = None,
) -> CancellationResult:
    """Cancel a goal.

    With nothing saved the goal and everything hanging off it are deleted.
    Otherwise the goal becomes CANCELLED, its escrow stays HELD and a refund
    request awaits admin approval.
    """

    settings = settings or get_settings()
    with serializable_transaction(session):
        goal = lock_goal(session, goal_id)
        if goal.user_id != user_id:
            raise UnauthorizedError("You do not own this goal")

        saved = saved_total(session, goal.id)
        if saved == 0:
            if goal.status not in LIVE_GOAL_STATUSES:
                raise InvalidTransitionError(f"Goal '{goal_id}' is {goal.status.value} and cannot be cancelled")
            for model in (Deposit, Escrow, RefundRequest, Notification, PriceLock):
                session.execute(delete(model).where(model.goal_id == goal.id))
            session.execute(delete(Goal).where(Goal.id == goal.id))
            result = CancellationResult(goal_id=goal_id, deleted=True)
        else:
            existing = session.scalar(select(RefundRequest).where(RefundRequest.goal_id == goal.id))
            if existing is not None:
                raise RefundAlreadyRequestedError(f"A refund was already requested for goal '{goal_id}'")

            transition(goal, GoalStatus.CANCELLED)
            request = RefundRequest(
                id=new_id(),
                user_id=user_id,
                goal_id=goal.id,
                amount=saved,
                reason=reason or CANCELLATION_REASON,
            )
            session.add(request)
            ensure_escrow(session, goal, currency=settings.currency)
            record_audit(
                session,
                actor_id=user_id,
                action="goal.cancel",
                resource_type="Goal",
                resource_id=goal.id,
                goal_id=goal.id,
                amount=saved,
                payload={"saved": f"{saved:.2f}", "refund_request_id": request.id},
            )
            flush_or_conflict(session)
            result = CancellationResult(goal_id=goal_id, deleted=False, refund_request=request)

    if result.refund_request is not None:
        session.refresh(result.refund_request)
    logger.info("goal cancelled", extra={"goal_id": goal_id, "deleted": result.deleted})
    return result


__all__ = [
    "CANCELLATION_REASON",
    "CancellationResult",
    "SaveGoalResult",
    "cancel_goal",
    "create_goal",
    "find_live_goal",
    "get_goal",
    "list_goals",
    "lock_goal",
    "save_goal",
    "saved_total",
    "update_goal",
]
