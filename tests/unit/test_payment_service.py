from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dreamsaver.core.config import get_settings
from dreamsaver.models import Deposit, Goal
from dreamsaver.services.errors import (
    ExceedsRemainingError,
    PaymentGatewayError,
    PaymentVerificationError,
    UnauthorizedError,
)
from dreamsaver.services.goals import create_goal
from dreamsaver.services.payments import (
    CheckoutRequest,
    CheckoutSession,
    HTTPPaymentGateway,
    PaymentService,
    idempotency_key_for,
)
from tests.conftest import CUSTOMER_ID, OTHER_CUSTOMER_ID, PRODUCT_ID, SECOND_PRODUCT_ID


class FakeGateway:
    """Gateway double that records checkouts and serves canned sessions."""

    def __init__(self) -> None:
        self.created: list[CheckoutRequest] = []
        self.sessions: dict[str, CheckoutSession] = {}
        self.lookups = 0

    def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        self.created.append(request)
        return CheckoutSession(id="cs_test_new", status="open", url="https://pay.example/cs_test_new")

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        self.lookups += 1
        return self.sessions[session_id]


def _paid(session_id: str, amount: str, goal_id: str) -> CheckoutSession:
    return CheckoutSession(id=session_id, status="paid", amount=Decimal(amount), metadata={"goal_id": goal_id})


def _goal(session: Session, product_id: str = PRODUCT_ID) -> Goal:
    return create_goal(session, user_id=CUSTOMER_ID, product_id=product_id, target_amount="1000")


def _deposit_count(session: Session) -> int:
    return session.scalar(select(func.count()).select_from(Deposit))


def test_start_checkout_builds_redirect_urls(db_session: Session) -> None:
    goal = _goal(db_session)
    gateway = FakeGateway()

    checkout = PaymentService(db_session, gateway=gateway).start_checkout(
        goal_id=goal.id, user_id=CUSTOMER_ID, amount="250", base_url="https://app.example/"
    )

    assert checkout.url == "https://pay.example/cs_test_new"
    request = gateway.created[0]
    assert request.amount == Decimal("250.00")
    assert request.currency == "PKR"
    assert request.product_description == "Road Bike"
    assert request.success_url.startswith(f"https://app.example/goals/{goal.id}?payment=success&amount=250.00")
    assert request.success_url.endswith("session_id={CHECKOUT_SESSION_ID}")
    assert request.cancel_url == f"https://app.example/goals/{goal.id}?payment=cancel"
    assert request.metadata == {"goal_id": goal.id, "user_id": CUSTOMER_ID, "amount": "250.00"}
    assert _deposit_count(db_session) == 0


def test_start_checkout_rejects_amount_over_remaining(db_session: Session) -> None:
    goal = _goal(db_session)

    with pytest.raises(ExceedsRemainingError):
        PaymentService(db_session, gateway=FakeGateway()).start_checkout(
            goal_id=goal.id, user_id=CUSTOMER_ID, amount="1000.01", base_url="https://app.example"
        )


def test_confirm_payment_credits_once(db_session: Session) -> None:
    goal = _goal(db_session)
    gateway = FakeGateway()
    gateway.sessions["cs_1"] = _paid("cs_1", "300", goal.id)
    service = PaymentService(db_session, gateway=gateway)

    first = service.confirm_payment(goal_id=goal.id, user_id=CUSTOMER_ID, session_id="cs_1", amount="300")
    second = service.confirm_payment(goal_id=goal.id, user_id=CUSTOMER_ID, session_id="cs_1", amount="300")

    assert first.duplicate is False
    assert first.deposit.payment_method == get_settings().payment_provider
    assert first.deposit.idempotency_key == "stripe:cs_1"
    assert second.duplicate is True
    assert second.deposit.id == first.deposit.id
    assert gateway.lookups == 1
    assert _deposit_count(db_session) == 1
    db_session.refresh(goal)
    assert goal.saved == Decimal("300.00")


def test_confirm_payment_trusts_the_gateway_amount_only(db_session: Session) -> None:
    goal = _goal(db_session)
    gateway = FakeGateway()
    gateway.sessions["cs_2"] = _paid("cs_2", "300", goal.id)

    with pytest.raises(PaymentVerificationError):
        PaymentService(db_session, gateway=gateway).confirm_payment(
            goal_id=goal.id, user_id=CUSTOMER_ID, session_id="cs_2", amount="900"
        )
    assert _deposit_count(db_session) == 0


def test_confirm_payment_rejects_unpaid_and_foreign_sessions(db_session: Session) -> None:
    goal = _goal(db_session)
    other_goal = _goal(db_session, product_id=SECOND_PRODUCT_ID)
    gateway = FakeGateway()
    gateway.sessions["cs_open"] = CheckoutSession(id="cs_open", status="open", amount=Decimal("10"))
    gateway.sessions["cs_other"] = _paid("cs_other", "10", other_goal.id)
    service = PaymentService(db_session, gateway=gateway)

    with pytest.raises(PaymentVerificationError):
        service.confirm_payment(goal_id=goal.id, user_id=CUSTOMER_ID, session_id="cs_open")
    with pytest.raises(PaymentVerificationError):
        service.confirm_payment(goal_id=goal.id, user_id=CUSTOMER_ID, session_id="cs_other")
    assert _deposit_count(db_session) == 0


def test_idempotency_key_is_provider_scoped() -> None:
    assert idempotency_key_for("STRIPE", "cs_123") == "stripe:cs_123"


def test_http_gateway_creates_and_retrieves_sessions() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        assert request.headers["Authorization"] == "Bearer sk_test"
        if request.method == "POST":
            payload = json.loads(request.content)
            assert payload["amount"] == "250.00"
            assert payload["currency"] == "pkr"
            return httpx.Response(200, json={"id": "cs_9", "url": "https://pay.example/cs_9"})
        return httpx.Response(
            200,
            json={"id": "cs_9", "status": "paid", "amount": "250.00", "metadata": {"goal_id": "g-1"}},
        )

    gateway = HTTPPaymentGateway(
        base_url="http://gateway/",
        api_key="sk_test",
        timeout_seconds=1.0,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    created = gateway.create_checkout(
        CheckoutRequest(
            amount=Decimal("250"),
            currency="PKR",
            product_description="Road Bike",
            success_url="https://app/success",
            cancel_url="https://app/cancel",
        )
    )
    retrieved = gateway.retrieve_session("cs_9")

    assert created.status == "open"
    assert created.url == "https://pay.example/cs_9"
    assert retrieved.paid is True
    assert retrieved.amount == Decimal("250.00")
    assert retrieved.metadata == {"goal_id": "g-1"}
    assert [str(request.url) for request in seen] == [
        "http://gateway/checkout/sessions",
        "http://gateway/checkout/sessions/cs_9",
    ]


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"status": "paid"}),
    ],
)
def test_http_gateway_failures_raise_gateway_error(response: httpx.Response) -> None:
    gateway = HTTPPaymentGateway(
        base_url="http://gateway",
        api_key="sk_test",
        timeout_seconds=1.0,
        client=httpx.Client(transport=httpx.MockTransport(lambda request: response)),
    )

    with pytest.raises(PaymentGatewayError):
        gateway.retrieve_session("cs_x")


def test_confirm_payment_replay_by_another_customer_is_unauthorized(db_session: Session) -> None:
    goal = _goal(db_session)
    gateway = FakeGateway()
    gateway.sessions["cs_1"] = _paid("cs_1", "300", goal.id)
    service = PaymentService(db_session, gateway=gateway)
    service.confirm_payment(goal_id=goal.id, user_id=CUSTOMER_ID, session_id="cs_1")

    with pytest.raises(UnauthorizedError):
        service.confirm_payment(goal_id=goal.id, user_id=OTHER_CUSTOMER_ID, session_id="cs_1")
    assert gateway.lookups == 1


def test_confirm_payment_on_foreign_goal_is_rejected_before_the_gateway(db_session: Session) -> None:
    goal = _goal(db_session)
    gateway = FakeGateway()
    gateway.sessions["cs_3"] = _paid("cs_3", "50", goal.id)

    with pytest.raises(UnauthorizedError):
        PaymentService(db_session, gateway=gateway).confirm_payment(
            goal_id=goal.id, user_id=OTHER_CUSTOMER_ID, session_id="cs_3"
        )
    assert gateway.lookups == 0
    assert _deposit_count(db_session) == 0


def test_confirm_payment_requires_goal_metadata(db_session: Session) -> None:
    goal = _goal(db_session)
    gateway = FakeGateway()
    gateway.sessions["cs_bare"] = CheckoutSession(id="cs_bare", status="paid", amount=Decimal("40"))

    with pytest.raises(PaymentVerificationError):
        PaymentService(db_session, gateway=gateway).confirm_payment(
            goal_id=goal.id, user_id=CUSTOMER_ID, session_id="cs_bare"
        )
    assert _deposit_count(db_session) == 0
