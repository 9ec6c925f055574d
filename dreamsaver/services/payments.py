"""Hosted checkout creation and idempotent payment confirmation."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

import httpx
from sqlalchemy.orm import Session

from dreamsaver.core.config import Settings, get_settings
from dreamsaver.models import Goal, GoalStatus, Product
from dreamsaver.obs import DUPLICATE_CONFIRMATION_COUNTER, traced
from dreamsaver.services.deposits import DepositResult, DepositService
from dreamsaver.services.errors import (
    ExceedsRemainingError,
    GoalAlreadyCompletedError,
    GoalClosedError,
    GoalNotFoundError,
    InvalidAmountError,
    PaymentGatewayError,
    PaymentVerificationError,
    UnauthorizedError,
)
from dreamsaver.services.ledger import quantize_money, remaining

logger = logging.getLogger(__name__)

PAID_STATUSES = {"paid", "complete", "succeeded"}


@dataclass(slots=True, frozen=True)
class CheckoutRequest:
    """Payload submitted to the gateway to open a hosted checkout."""

    amount: Decimal
    currency: str
    product_description: str
    success_url: str
    cancel_url: str
    metadata: dict[str, str] = field(default_factory=dict)

    def to_json(self) -> dict[str, object]:
        return {
            "amount": f"{self.amount:.2f}",
            "currency": self.currency.lower(),
            "product_description": self.product_description,
            "success_url": self.success_url,
            "cancel_url": self.cancel_url,
            "metadata": self.metadata,
        }


@dataclass(slots=True, frozen=True)
class CheckoutSession:
    id: str
    status: str
    amount: Decimal | None = None
    url: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def paid(self) -> bool:
        return self.status.lower() in PAID_STATUSES


class PaymentGateway(Protocol):
    """Protocol describing a hosted checkout provider."""

    def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        """Open a checkout session and return its redirect URL."""

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        """Look up a checkout session by id."""


class HTTPPaymentGateway:
    """HTTP client for the payment gateway's checkout session API."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_seconds: float,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._timeout = timeout_seconds
        self._client = client or httpx.Client()

    def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        payload = self._call("POST", "/checkout/sessions", json=request.to_json())
        if not payload.get("url"):
            raise PaymentGatewayError("Payment gateway did not return a checkout URL")
        return self._parse(payload, default_status="open")

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        return self._parse(self._call("GET", f"/checkout/sessions/{session_id}"))

    def _call(self, method: str, path: str, **kwargs: object) -> dict:
        try:
            response = self._client.request(
                method,
                f"{self._base_url}{path}",
                headers=self._headers,
                timeout=self._timeout,
                **kwargs,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise PaymentGatewayError(f"Payment gateway call {method} {path} failed") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise PaymentGatewayError("Invalid payment gateway response") from exc
        if not isinstance(payload, dict) or not payload.get("id"):
            raise PaymentGatewayError("Incomplete payment gateway response")
        return payload

    @staticmethod
    def _parse(payload: dict, *, default_status: str = "unknown") -> CheckoutSession:
        amount = payload.get("amount")
        return CheckoutSession(
            id=str(payload["id"]),
            status=str(payload.get("status") or default_status),
            amount=quantize_money(amount) if amount is not None else None,
            url=payload.get("url"),
            metadata={str(key): str(value) for key, value in (payload.get("metadata") or {}).items()},
        )


def idempotency_key_for(provider: str, session_id: str) -> str:
    return f"{provider.lower()}:{session_id}"


class PaymentService:
    """Bridges the payment gateway and the deposit processor."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        gateway: PaymentGateway | None = None,
        deposits: DepositService | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._gateway = gateway or HTTPPaymentGateway(
            base_url=self._settings.payment_gateway_url,
            api_key=self._settings.payment_gateway_api_key,
            timeout_seconds=self._settings.payment_gateway_timeout_seconds,
        )
        self._deposits = deposits or DepositService(session, settings=self._settings)

    @traced("payment.checkout")
    def start_checkout(
        self,
        *,
        goal_id: str,
        user_id: str,
        amount: Decimal | int | float | str,
        base_url: str,
    ) -> CheckoutSession:
        """Open a hosted checkout for a deposit; nothing is credited until confirmation."""

        normalized = quantize_money(amount)
        goal = self._open_goal(goal_id=goal_id, user_id=user_id)
        if normalized <= 0:
            raise InvalidAmountError("Deposit amount must be greater than zero")
        left = remaining(goal.target_amount, goal.saved)
        if normalized > left:
            raise ExceedsRemainingError(left)

        product = self._session.get(Product, goal.product_id)
        root = base_url.rstrip("/")
        request = CheckoutRequest(
            amount=normalized,
            currency=self._settings.currency,
            product_description=product.name if product is not None else "Savings Goal Deposit",
            success_url=f"{root}/goals/{goal.id}?payment=success&amount={normalized}&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{root}/goals/{goal.id}?payment=cancel",
            metadata={"goal_id": goal.id, "user_id": user_id, "amount": f"{normalized:.2f}"},
        )
        checkout = self._gateway.create_checkout(request)
        logger.info("checkout session created", extra={"goal_id": goal.id, "checkout_session_id": checkout.id})
        return checkout

    @traced("payment.confirm")
    def confirm_payment(
        self,
        *,
        goal_id: str,
        user_id: str,
        session_id: str,
        amount: Decimal | int | float | str | None = None,
    ) -> DepositResult:
        """Verify a checkout session with the gateway and credit it exactly once."""

        self._owned_goal(goal_id=goal_id, user_id=user_id)
        key = idempotency_key_for(self._settings.payment_provider, session_id)
        existing = self._deposits.find_by_idempotency_key(key)
        if existing is not None:
            result = self._deposits.duplicate_result(existing, user_id=user_id)
            if existing.goal_id != goal_id:
                raise PaymentVerificationError("Payment session belongs to a different goal")
            DUPLICATE_CONFIRMATION_COUNTER.inc()
            logger.info("duplicate payment confirmation", extra={"goal_id": goal_id, "checkout_session_id": session_id})
            return result

        checkout = self._gateway.retrieve_session(session_id)
        if not checkout.paid:
            raise PaymentVerificationError(f"Payment session '{session_id}' is not paid")
        if checkout.amount is None:
            raise PaymentVerificationError(f"Payment session '{session_id}' carries no amount")
        if amount is not None and quantize_money(amount) != checkout.amount:
            raise PaymentVerificationError("Confirmed amount does not match the payment session")
        if checkout.metadata.get("goal_id") != goal_id:
            raise PaymentVerificationError("Payment session belongs to a different goal")

        result = self._deposits.record_deposit(
            goal_id=goal_id,
            user_id=user_id,
            amount=checkout.amount,
            payment_method=self._settings.payment_provider,
            idempotency_key=key,
        )
        if result.duplicate:
            DUPLICATE_CONFIRMATION_COUNTER.inc()
        return result

    def _owned_goal(self, *, goal_id: str, user_id: str) -> Goal:
        goal = self._session.get(Goal, goal_id)
        if goal is None:
            raise GoalNotFoundError(f"Goal '{goal_id}' was not found")
        if goal.user_id != user_id:
            raise UnauthorizedError("You do not own this goal")
        return goal

    def _open_goal(self, *, goal_id: str, user_id: str) -> Goal:
        goal = self._owned_goal(goal_id=goal_id, user_id=user_id)
        if goal.status in (GoalStatus.COMPLETED, GoalStatus.REDEEMED):
            raise GoalAlreadyCompletedError(f"Goal '{goal_id}' is already fully funded")
        if goal.status in (GoalStatus.CANCELLED, GoalStatus.REFUNDED):
            raise GoalClosedError(f"Goal '{goal_id}' is {goal.status.value} and no longer accepts deposits")
        return goal


__all__ = [
    "CheckoutRequest",
    "CheckoutSession",
    "HTTPPaymentGateway",
    "PaymentGateway",
    "PaymentService",
    "idempotency_key_for",
]
