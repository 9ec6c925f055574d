from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import TextClause

from dreamsaver.models import AuditLog, Deposit, Escrow, EscrowStatus, Goal, GoalStatus, Notification, NotificationType
from dreamsaver.services.deposits import GOAL_COMPLETED_EVENT, MANUAL_PAYMENT_METHOD, DepositService
from dreamsaver.services.errors import (
    ExceedsRemainingError,
    GoalAlreadyCompletedError,
    GoalClosedError,
    GoalNotFoundError,
    InvalidAmountError,
    UnauthorizedError,
)
from dreamsaver.services.escrow import AdminContext
from dreamsaver.services.goals import cancel_goal, create_goal
from tests.conftest import ADMIN_ID, CUSTOMER_ID, OTHER_CUSTOMER_ID, PRODUCT_ID, TestingSessionLocal


def _goal(session: Session, target: str = "1000", **kwargs) -> Goal:
    return create_goal(session, user_id=CUSTOMER_ID, product_id=PRODUCT_ID, target_amount=target, **kwargs)


def _escrow(session: Session, goal_id: str) -> Escrow:
    return session.scalar(select(Escrow).where(Escrow.goal_id == goal_id))


def test_deposits_fund_a_goal_to_completion(db_session: Session, kafka_messages) -> None:
    goal = _goal(db_session)
    service = DepositService(db_session)

    first = service.record_deposit(goal_id=goal.id, user_id=CUSTOMER_ID, amount="400")
    assert first.goal.saved == Decimal("400.00")
    assert first.goal.status == GoalStatus.ACTIVE
    assert first.completed is False
    assert _escrow(db_session, goal.id).amount == Decimal("400.00")

    with pytest.raises(ExceedsRemainingError) as excinfo:
        service.record_deposit(goal_id=goal.id, user_id=CUSTOMER_ID, amount="700")
    assert excinfo.value.remaining == Decimal("600.00")
    db_session.refresh(goal)
    assert goal.saved == Decimal("400.00")

    final = service.record_deposit(goal_id=goal.id, user_id=CUSTOMER_ID, amount="600")
    assert final.completed is True
    assert final.goal.saved == Decimal("1000.00")
    assert final.goal.status == GoalStatus.COMPLETED
    assert final.goal.end_date is not None

    escrow = _escrow(db_session, goal.id)
    assert escrow.amount == Decimal("1000.00")
    assert escrow.status == EscrowStatus.HELD

    notification = db_session.scalar(select(Notification).where(Notification.goal_id == goal.id))
    assert notification is not None
    assert notification.type == NotificationType.GOAL_COMPLETE

    assert len(kafka_messages) == 1
    event = kafka_messages[0]["value"]
    assert event["event_type"] == GOAL_COMPLETED_EVENT
    assert event["goal_id"] == goal.id
    assert event["status"] == GoalStatus.COMPLETED.value


def test_saved_always_equals_sum_of_deposits(db_session: Session) -> None:
    goal = _goal(db_session, target="100")
    service = DepositService(db_session)

    for amount in ("10.10", "20.20", "30.30"):
        service.record_deposit(goal_id=goal.id, user_id=CUSTOMER_ID, amount=amount)

    db_session.refresh(goal)
    deposits = db_session.scalars(select(Deposit).where(Deposit.goal_id == goal.id)).all()
    assert goal.saved == sum((deposit.amount for deposit in deposits), Decimal("0.00")) == Decimal("60.60")


def test_exact_remaining_amount_completes_and_then_goal_rejects_more(db_session: Session) -> None:
    goal = _goal(db_session, target="250.50")
    service = DepositService(db_session)

    result = service.record_deposit(goal_id=goal.id, user_id=CUSTOMER_ID, amount="250.50")
    assert result.completed is True

    with pytest.raises(GoalAlreadyCompletedError):
        service.record_deposit(goal_id=goal.id, user_id=CUSTOMER_ID, amount="1")


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_non_positive_amounts_are_rejected(db_session: Session, amount: str) -> None:
    goal = _goal(db_session)

    with pytest.raises(InvalidAmountError):
        DepositService(db_session).record_deposit(goal_id=goal.id, user_id=CUSTOMER_ID, amount=amount)


def test_deposit_checks_goal_and_owner(db_session: Session) -> None:
    goal = _goal(db_session)
    service = DepositService(db_session)

    with pytest.raises(GoalNotFoundError):
        service.record_deposit(goal_id="missing", user_id=CUSTOMER_ID, amount="10")
    with pytest.raises(UnauthorizedError):
        service.record_deposit(goal_id=goal.id, user_id=OTHER_CUSTOMER_ID, amount="10")


def test_cancelled_goal_rejects_deposits(db_session: Session) -> None:
    goal = _goal(db_session)
    service = DepositService(db_session)
    service.record_deposit(goal_id=goal.id, user_id=CUSTOMER_ID, amount="10")
    cancel_goal(db_session, goal_id=goal.id, user_id=CUSTOMER_ID)

    with pytest.raises(GoalClosedError):
        service.record_deposit(goal_id=goal.id, user_id=CUSTOMER_ID, amount="10")


def test_first_deposit_activates_a_draft_goal(db_session: Session) -> None:
    goal = _goal(db_session, status=GoalStatus.SAVED)

    result = DepositService(db_session).record_deposit(goal_id=goal.id, user_id=CUSTOMER_ID, amount="10")

    assert result.goal.status == GoalStatus.ACTIVE


def test_repeated_idempotency_key_credits_once(db_session: Session) -> None:
    goal = _goal(db_session)
    service = DepositService(db_session)

    first = service.record_deposit(
        goal_id=goal.id, user_id=CUSTOMER_ID, amount="100", idempotency_key="stripe:cs_test_1"
    )
    second = service.record_deposit(
        goal_id=goal.id, user_id=CUSTOMER_ID, amount="100", idempotency_key="stripe:cs_test_1"
    )

    assert first.duplicate is False
    assert second.duplicate is True
    assert second.deposit.id == first.deposit.id
    db_session.refresh(goal)
    assert goal.saved == Decimal("100.00")


def test_repeated_idempotency_key_from_another_user_is_unauthorized(db_session: Session) -> None:
    goal = _goal(db_session)
    service = DepositService(db_session)
    service.record_deposit(goal_id=goal.id, user_id=CUSTOMER_ID, amount="100", idempotency_key="stripe:cs_test_2")

    with pytest.raises(UnauthorizedError):
        service.record_deposit(
            goal_id=goal.id, user_id=OTHER_CUSTOMER_ID, amount="100", idempotency_key="stripe:cs_test_2"
        )


@pytest.mark.parametrize("amount", ["1e30", "100000000000000000"])
def test_amounts_wider_than_the_money_column_are_rejected(db_session: Session, amount: str) -> None:
    goal = _goal(db_session)

    with pytest.raises(InvalidAmountError):
        DepositService(db_session).record_deposit(goal_id=goal.id, user_id=CUSTOMER_ID, amount=amount)


def test_receipt_numbers_are_unique(db_session: Session) -> None:
    goal = _goal(db_session)
    service = DepositService(db_session)

    receipts = {
        service.record_deposit(goal_id=goal.id, user_id=CUSTOMER_ID, amount="1").deposit.receipt_number
        for _ in range(3)
    }

    assert len(receipts) == 3


def test_deposits_run_in_an_immediate_transaction(db_session: Session, monkeypatch) -> None:
    goal = _goal(db_session, target="100")
    goal_id = goal.id

    statements: list[str] = []
    original_execute = Session.execute

    def tracking_execute(self: Session, statement, *args, **kwargs):
        if isinstance(statement, TextClause):
            statements.append(str(statement))
        return original_execute(self, statement, *args, **kwargs)

    monkeypatch.setattr(Session, "execute", tracking_execute)

    for amount in (Decimal("50.00"), Decimal("25.00"), Decimal("10.00")):
        session = TestingSessionLocal()
        try:
            DepositService(session).record_deposit(goal_id=goal_id, user_id=CUSTOMER_ID, amount=amount)
        finally:
            session.close()

    db_session.expire_all()
    assert db_session.get(Goal, goal_id).saved == Decimal("85.00")
    assert any("BEGIN IMMEDIATE" in statement for statement in statements)


def test_manual_deposit_credits_the_owner_and_writes_an_audit_row(db_session: Session) -> None:
    goal = _goal(db_session)
    admin = AdminContext(admin_id=ADMIN_ID, ip_address="10.0.0.9")

    result = DepositService(db_session).record_manual_deposit(goal_id=goal.id, amount="150", admin=admin)

    assert result.deposit.user_id == CUSTOMER_ID
    assert result.deposit.payment_method == MANUAL_PAYMENT_METHOD
    assert result.goal.saved == Decimal("150.00")
    audit = db_session.scalar(select(AuditLog).where(AuditLog.action == "deposit.manual"))
    assert audit.actor_id == ADMIN_ID
    assert audit.resource_id == result.deposit.id
    assert audit.ip_address == "10.0.0.9"

    with pytest.raises(GoalNotFoundError):
        DepositService(db_session).record_manual_deposit(goal_id="missing", amount="1", admin=admin)
