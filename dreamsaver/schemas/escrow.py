"""Schemas for escrow settlement, refunds and reporting."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from dreamsaver.models import EscrowStatus, GoalStatus, RefundRequestStatus, RefundStatus
from dreamsaver.services.reporting import ActionType


class EscrowRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    goal_id: str
    amount: Decimal
    currency: str
    status: EscrowStatus
    platform_fee: Decimal | None
    net_amount: Decimal | None
    released_at: datetime | None
    released_by: str | None
    notes: str | None


class RefundRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    goal_id: str
    amount: Decimal
    reason: str | None
    status: RefundRequestStatus
    processed_at: datetime | None
    admin_id: str | None
    response_note: str | None


class RefundRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    goal_id: str
    store_id: str | None
    amount: Decimal
    reason: str | None
    status: RefundStatus


class CancellationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    goal_id: str
    deleted: bool
    refund_request: RefundRequestRead | None = None


class RefundApprovalRequest(BaseModel):
    note: str | None = Field(default=None, max_length=1000)


class RefundApprovalResponse(BaseModel):
    refund_request: RefundRequestRead
    refund: RefundRead
    escrow: EscrowRead
    goal_status: GoalStatus


class EscrowSyncResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    created: int
    realigned: int


class EscrowStatsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_earnings: Decimal
    total_held: Decimal
    pending_actions: int


class ActionItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: ActionType
    goal_id: str
    amount: Decimal
    customer_name: str | None
    store_name: str | None
    product_name: str | None


class EscrowHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    goal_id: str
    amount: Decimal
    platform_fee: Decimal
    net_amount: Decimal
    status: EscrowStatus
    date: datetime
    customer_name: str | None
    store_name: str | None
    product_name: str | None


class EscrowOverviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stats: EscrowStatsRead
    actionable: list[ActionItemRead]
    history: list[EscrowHistoryRead]
    current_page: int
    total_pages: int
    total_records: int


class PayoutLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    goal_id: str
    date: datetime | None
    product_name: str | None
    customer_name: str | None
    total_amount: Decimal
    platform_fee: Decimal
    net_payout: Decimal
    status: str


class StoreRevenueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    store_name: str
    total_revenue: Decimal
    platform_fees: Decimal
    pending_payouts: Decimal
    completed_orders: int
    transactions: list[PayoutLineRead]


__all__ = [
    "ActionItemRead",
    "CancellationResponse",
    "EscrowHistoryRead",
    "EscrowOverviewResponse",
    "EscrowRead",
    "EscrowStatsRead",
    "EscrowSyncResponse",
    "PayoutLineRead",
    "RefundApprovalRequest",
    "RefundApprovalResponse",
    "RefundRead",
    "RefundRequestRead",
    "StoreRevenueResponse",
]
