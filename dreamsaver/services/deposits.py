"""Deposit processing: the only code path that increases ``Goal.saved``."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from dreamsaver.core.config import Settings, get_settings
from dreamsaver.db.session import serializable_transaction
from dreamsaver.models import (
    Deposit,
    DepositStatus,
    EscrowStatus,
    Goal,
    GoalStatus,
    Notification,
    NotificationType,
)
from dreamsaver.obs import DEPOSIT_AMOUNT_COUNTER, DEPOSIT_COUNTER, GOAL_COMPLETED_COUNTER, traced
from dreamsaver.services.errors import (
    ConcurrencyError,
    ExceedsRemainingError,
    GoalAlreadyCompletedError,
    GoalClosedError,
    GoalNotFoundError,
    InvalidAmountError,
    UnauthorizedError,
)
from dreamsaver.services.escrow import AdminContext, ensure_escrow, record_audit
from dreamsaver.services.goal_events import GoalEventPublisher, publish_after_commit
from dreamsaver.services.goals import lock_goal, saved_total
from dreamsaver.services.ledger import quantize_money, remaining
from dreamsaver.services.lifecycle import flush_or_conflict, transition

logger = logging.getLogger(__name__)

GOAL_COMPLETED_EVENT = "goal.completed"
MANUAL_PAYMENT_METHOD = "MANUAL"


@dataclass(slots=True, frozen=True)
class DepositResult:
    goal: Goal
    deposit: Deposit
    completed: bool
    duplicate: bool = False


class DepositService:
    """Applies deposits to goals under SERIALIZABLE isolation."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        publisher: GoalEventPublisher | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._publisher = publisher or GoalEventPublisher(settings=self._settings)

    def find_by_idempotency_key(self, idempotency_key: str) -> Deposit | None:
        return self._session.scalar(select(Deposit).where(Deposit.idempotency_key == idempotency_key))

    def duplicate_result(self, deposit: Deposit, *, user_id: str) -> DepositResult:
        """Result for a payment that was already credited, shown only to the depositor."""

        if deposit.user_id != user_id:
            raise UnauthorizedError("This payment belongs to another customer")
        goal = self._session.get(Goal, deposit.goal_id)
        return DepositResult(goal=goal, deposit=deposit, completed=False, duplicate=True)

    @traced("goal.deposit")
    def record_deposit(
        self,
        *,
        goal_id: str,
        user_id: str,
        amount: Decimal | int | float | str,
        payment_method: str = "STRIPE",
        idempotency_key: str | None = None,
        recorded_by: AdminContext | None = None,
    ) -> DepositResult:
        """Credit ``amount`` to the goal. Customers reach this only through a confirmed payment."""

        normalized = quantize_money(amount)
        try:
            with serializable_transaction(self._session, timeout_seconds=self._settings.transaction_timeout_seconds):
                if idempotency_key is not None:
                    existing = self.find_by_idempotency_key(idempotency_key)
                    if existing is not None:
                        return self.duplicate_result(existing, user_id=user_id)
                deposit, goal, completed = self._apply(
                    goal_id=goal_id,
                    user_id=user_id,
                    amount=normalized,
                    payment_method=payment_method,
                    idempotency_key=idempotency_key,
                    recorded_by=recorded_by,
                )
        except IntegrityError as exc:
            # A concurrent confirmation of the same payment session won the race.
            if idempotency_key is not None:
                existing = self.find_by_idempotency_key(idempotency_key)
                if existing is not None:
                    return self.duplicate_result(existing, user_id=user_id)
            raise ConcurrencyError("Goal was funded concurrently; retry the deposit") from exc
        except StaleDataError as exc:
            raise ConcurrencyError("Goal was modified concurrently; retry the deposit") from exc

        self._session.refresh(goal)
        self._session.refresh(deposit)

        DEPOSIT_COUNTER.labels(payment_method=payment_method).inc()
        DEPOSIT_AMOUNT_COUNTER.inc(float(deposit.amount))
        logger.info(
            "deposit recorded",
            extra={"goal_id": goal.id, "deposit_id": deposit.id, "amount": str(deposit.amount)},
        )
        if completed:
            GOAL_COMPLETED_COUNTER.inc()
            publish_after_commit(self._publisher, goal, event_type=GOAL_COMPLETED_EVENT)
        return DepositResult(goal=goal, deposit=deposit, completed=completed)

    @traced("goal.manual_deposit")
    def record_manual_deposit(
        self,
        *,
        goal_id: str,
        amount: Decimal | int | float | str,
        admin: AdminContext,
        payment_method: str = MANUAL_PAYMENT_METHOD,
    ) -> DepositResult:
        """Credit cash or a bank transfer taken offline to the goal owner, audited against the admin."""

        owner_id = self._session.scalar(select(Goal.user_id).where(Goal.id == goal_id))
        if owner_id is None:
            raise GoalNotFoundError(f"Goal '{goal_id}' was not found")
        return self.record_deposit(
            goal_id=goal_id,
            user_id=owner_id,
            amount=amount,
            payment_method=payment_method,
            recorded_by=admin,
        )

    def _apply(
        self,
        *,
        goal_id: str,
        user_id: str,
        amount: Decimal,
        payment_method: str,
        idempotency_key: str | None,
        recorded_by: AdminContext | None,
    ) -> tuple[Deposit, Goal, bool]:
        session = self._session
        goal = lock_goal(session, goal_id)
        if goal.user_id != user_id:
            raise UnauthorizedError("You do not own this goal")
        if goal.status in (GoalStatus.COMPLETED, GoalStatus.REDEEMED):
            raise GoalAlreadyCompletedError(f"Goal '{goal_id}' is already fully funded")
        if goal.status in (GoalStatus.CANCELLED, GoalStatus.REFUNDED):
            raise GoalClosedError(f"Goal '{goal_id}' is {goal.status.value} and no longer accepts deposits")
        if amount <= 0:
            raise InvalidAmountError("Deposit amount must be greater than zero")

        left = remaining(goal.target_amount, saved_total(session, goal.id))
        if amount > left:
            raise ExceedsRemainingError(left)

        deposit = Deposit(
            goal_id=goal.id,
            user_id=user_id,
            amount=amount,
            payment_method=payment_method,
            status=DepositStatus.COMPLETED,
            idempotency_key=idempotency_key,
        )
        session.add(deposit)
        session.flush()
        if recorded_by is not None:
            record_audit(
                session,
                actor_id=recorded_by.admin_id,
                action="deposit.manual",
                resource_type="Deposit",
                resource_id=deposit.id,
                goal_id=goal.id,
                amount=amount,
                payload={"goal_id": goal.id, "amount": f"{amount:.2f}", "payment_method": payment_method},
                ip_address=recorded_by.ip_address,
            )

        goal.saved = saved_total(session, goal.id)
        if goal.status == GoalStatus.SAVED:
            transition(goal, GoalStatus.ACTIVE)
        completed = goal.saved >= goal.target_amount
        if completed:
            transition(goal, GoalStatus.COMPLETED)
            goal.end_date = datetime.now(timezone.utc)
            session.add(
                Notification(
                    user_id=goal.user_id,
                    goal_id=goal.id,
                    type=NotificationType.GOAL_COMPLETE,
                    title="Goal completed",
                    message="Your savings goal is fully funded and ready to redeem.",
                )
            )

        escrow = ensure_escrow(session, goal, currency=self._settings.currency)
        if escrow.status == EscrowStatus.HELD:
            escrow.amount = goal.saved
        flush_or_conflict(session)
        return deposit, goal, completed


__all__ = ["DepositResult", "DepositService", "GOAL_COMPLETED_EVENT", "MANUAL_PAYMENT_METHOD"]
