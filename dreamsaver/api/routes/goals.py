"""Savings goal endpoints: commitment, card checkout and confirmation, cancellation and redemption."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from dreamsaver.api.deps import get_db_session, http_error
from dreamsaver.api.routes.auth import AuthenticatedUser, get_current_user
from dreamsaver.core.config import get_settings
from dreamsaver.schemas import (
    CancellationResponse,
    CheckoutCreate,
    CheckoutResponse,
    DeliveryRead,
    DepositRead,
    DepositResponse,
    GoalRead,
    GoalSaveRequest,
    GoalSaveResponse,
    PaymentConfirmRequest,
    RedeemRequest,
)
from dreamsaver.services.deliveries import redeem
from dreamsaver.services.deposits import DepositResult, DepositService
from dreamsaver.services.errors import GoalServiceError
from dreamsaver.services.goal_events import GoalEventPublisher
from dreamsaver.services.goals import cancel_goal, get_goal, list_goals, save_goal
from dreamsaver.services.payments import HTTPPaymentGateway, PaymentGateway, PaymentService

router = APIRouter(prefix="/goals")


def get_goal_event_publisher() -> GoalEventPublisher:
    return GoalEventPublisher(settings=get_settings())


def get_payment_gateway() -> PaymentGateway:
    settings = get_settings()
    return HTTPPaymentGateway(
        base_url=settings.payment_gateway_url,
        api_key=settings.payment_gateway_api_key,
        timeout_seconds=settings.payment_gateway_timeout_seconds,
    )


def get_deposit_service(
    session: Session = Depends(get_db_session),
    publisher: GoalEventPublisher = Depends(get_goal_event_publisher),
) -> DepositService:
    return DepositService(session, settings=get_settings(), publisher=publisher)


def get_payment_service(
    session: Session = Depends(get_db_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    deposits: DepositService = Depends(get_deposit_service),
) -> PaymentService:
    return PaymentService(session, settings=get_settings(), gateway=gateway, deposits=deposits)


def deposit_response(result: DepositResult) -> DepositResponse:
    return DepositResponse(
        goal=GoalRead.model_validate(result.goal),
        deposit=DepositRead.model_validate(result.deposit),
        completed=result.completed,
        duplicate=result.duplicate,
    )


@router.get("", response_model=list[GoalRead])
def list_my_goals(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> list[GoalRead]:
    return [GoalRead.model_validate(goal) for goal in list_goals(session, user_id=user.user_id)]


@router.post("", response_model=GoalSaveResponse)
def save_my_goal(
    payload: GoalSaveRequest,
    response: Response,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> GoalSaveResponse:
    try:
        result = save_goal(
            session,
            user_id=user.user_id,
            product_id=payload.product_id,
            target_amount=payload.target_amount,
            target_date=payload.target_date,
            status=payload.status,
        )
    except GoalServiceError as exc:
        raise http_error(exc) from exc

    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return GoalSaveResponse(goal=GoalRead.model_validate(result.goal), created=result.created)


@router.get("/{goal_id}", response_model=GoalRead)
def read_goal(
    goal_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> GoalRead:
    try:
        goal = get_goal(session, goal_id=goal_id, user_id=user.user_id)
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return GoalRead.model_validate(goal)


@router.delete("/{goal_id}", response_model=CancellationResponse)
def cancel_my_goal(
    goal_id: str,
    reason: str | None = Query(default=None, max_length=500),
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> CancellationResponse:
    try:
        result = cancel_goal(session, goal_id=goal_id, user_id=user.user_id, reason=reason)
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return CancellationResponse.model_validate(result)


@router.post("/{goal_id}/checkout", response_model=CheckoutResponse)
def create_checkout(
    goal_id: str,
    payload: CheckoutCreate,
    request: Request,
    payments: PaymentService = Depends(get_payment_service),
    user: AuthenticatedUser = Depends(get_current_user),
) -> CheckoutResponse:
    base_url = request.headers.get("origin") or str(request.base_url)
    try:
        checkout = payments.start_checkout(
            goal_id=goal_id,
            user_id=user.user_id,
            amount=payload.amount,
            base_url=base_url,
        )
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return CheckoutResponse(session_id=checkout.id, checkout_url=checkout.url)


@router.post("/{goal_id}/confirm", response_model=DepositResponse)
def confirm_payment(
    goal_id: str,
    payload: PaymentConfirmRequest,
    payments: PaymentService = Depends(get_payment_service),
    user: AuthenticatedUser = Depends(get_current_user),
) -> DepositResponse:
    try:
        result = payments.confirm_payment(
            goal_id=goal_id,
            user_id=user.user_id,
            session_id=payload.session_id,
            amount=payload.amount,
        )
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return deposit_response(result)


@router.post("/{goal_id}/redeem", response_model=DeliveryRead)
def redeem_goal(
    goal_id: str,
    payload: RedeemRequest,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> DeliveryRead:
    try:
        delivery = redeem(
            session,
            goal_id=goal_id,
            user_id=user.user_id,
            address_id=payload.address_id,
            delivery_date=payload.delivery_date,
        )
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return DeliveryRead.model_validate(delivery)


__all__ = ["deposit_response", "get_deposit_service", "get_goal_event_publisher", "get_payment_gateway", "router"]
