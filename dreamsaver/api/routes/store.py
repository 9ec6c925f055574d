"""Seller endpoints: payout revenue and the delivery queue."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dreamsaver.api.deps import get_db_session, http_error
from dreamsaver.api.routes.auth import AuthenticatedUser, require_role
from dreamsaver.models import UserRole
from dreamsaver.schemas import DeliveryRead, DeliveryTrackingRead, StoreDeliveryRead, StoreRevenueResponse
from dreamsaver.services.deliveries import list_store_deliveries
from dreamsaver.services.errors import GoalServiceError
from dreamsaver.services.reporting import store_revenue

router = APIRouter(prefix="/store")


@router.get("/revenue", response_model=StoreRevenueResponse)
def read_store_revenue(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(UserRole.SELLER)),
) -> StoreRevenueResponse:
    try:
        revenue = store_revenue(session, owner_user_id=user.user_id)
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return StoreRevenueResponse.model_validate(revenue)


@router.get("/deliveries", response_model=list[StoreDeliveryRead])
def read_store_deliveries(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(UserRole.SELLER)),
) -> list[StoreDeliveryRead]:
    queue = list_store_deliveries(session, owner_user_id=user.user_id)
    return [
        StoreDeliveryRead(
            **DeliveryRead.model_validate(item.delivery).model_dump(),
            customer_name=item.customer_name,
            product_name=item.product_name,
            latest_tracking=(
                DeliveryTrackingRead.model_validate(item.latest_tracking) if item.latest_tracking is not None else None
            ),
        )
        for item in queue
    ]


__all__ = ["router"]
