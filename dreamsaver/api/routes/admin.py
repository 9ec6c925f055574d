"""Admin escrow dashboard, settlement and offline deposit endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from dreamsaver.api.deps import get_db_session, http_error
from dreamsaver.api.routes.auth import require_admin
from dreamsaver.api.routes.goals import deposit_response, get_deposit_service
from dreamsaver.schemas import (
    DepositResponse,
    EscrowOverviewResponse,
    EscrowRead,
    EscrowSyncResponse,
    ManualDepositRequest,
    RefundApprovalRequest,
    RefundApprovalResponse,
    RefundRead,
    RefundRequestRead,
)
from dreamsaver.services.deposits import DepositService
from dreamsaver.services.errors import GoalServiceError
from dreamsaver.services.escrow import AdminContext, approve_refund, release_escrow, sync_escrows
from dreamsaver.services.reporting import MAX_PAGE_SIZE, HistoryFilter, escrow_overview

router = APIRouter(prefix="/admin")


@router.get("/escrow", response_model=EscrowOverviewResponse)
def read_escrow_overview(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    history_filter: HistoryFilter = Query(default=HistoryFilter.ALL, alias="filter"),
    session: Session = Depends(get_db_session),
    admin: AdminContext = Depends(require_admin),
) -> EscrowOverviewResponse:
    try:
        overview = escrow_overview(session, page=page, limit=limit, history_filter=history_filter)
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return EscrowOverviewResponse.model_validate(overview)


@router.post("/escrow/sync", response_model=EscrowSyncResponse)
def sync_escrow_records(
    session: Session = Depends(get_db_session),
    admin: AdminContext = Depends(require_admin),
) -> EscrowSyncResponse:
    try:
        result = sync_escrows(session, admin)
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return EscrowSyncResponse.model_validate(result)


@router.post("/escrow/{escrow_id}/release", response_model=EscrowRead)
def release_escrow_funds(
    escrow_id: str,
    session: Session = Depends(get_db_session),
    admin: AdminContext = Depends(require_admin),
) -> EscrowRead:
    try:
        escrow = release_escrow(session, escrow_id=escrow_id, admin=admin)
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return EscrowRead.model_validate(escrow)


@router.post("/refunds/{refund_request_id}/approve", response_model=RefundApprovalResponse)
def approve_refund_request(
    refund_request_id: str,
    payload: RefundApprovalRequest | None = Body(default=None),
    session: Session = Depends(get_db_session),
    admin: AdminContext = Depends(require_admin),
) -> RefundApprovalResponse:
    try:
        outcome = approve_refund(
            session,
            refund_request_id=refund_request_id,
            admin=admin,
            note=payload.note if payload is not None else None,
        )
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return RefundApprovalResponse(
        refund_request=RefundRequestRead.model_validate(outcome.refund_request),
        refund=RefundRead.model_validate(outcome.refund),
        escrow=EscrowRead.model_validate(outcome.escrow),
        goal_status=outcome.goal.status,
    )


@router.post(
    "/goals/{goal_id}/deposits",
    response_model=DepositResponse,
    status_code=status.HTTP_201_CREATED,
)
def record_manual_deposit(
    goal_id: str,
    payload: ManualDepositRequest,
    admin: AdminContext = Depends(require_admin),
    deposits: DepositService = Depends(get_deposit_service),
) -> DepositResponse:
    try:
        result = deposits.record_manual_deposit(
            goal_id=goal_id,
            amount=payload.amount,
            admin=admin,
            payment_method=payload.payment_method,
        )
    except GoalServiceError as exc:
        raise http_error(exc) from exc
    return deposit_response(result)


__all__ = ["router"]
