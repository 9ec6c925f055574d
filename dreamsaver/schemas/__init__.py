"""Pydantic schemas package."""

from .address import AddressCreate, AddressRead
from .delivery import (
    DeliveryDetail,
    DeliveryRead,
    DeliveryStatusUpdate,
    DeliveryTrackingRead,
    LocationUpdate,
    RedeemRequest,
    StoreDeliveryRead,
)
from .escrow import (
    ActionItemRead,
    CancellationResponse,
    EscrowHistoryRead,
    EscrowOverviewResponse,
    EscrowRead,
    EscrowStatsRead,
    EscrowSyncResponse,
    PayoutLineRead,
    RefundApprovalRequest,
    RefundApprovalResponse,
    RefundRead,
    RefundRequestRead,
    StoreRevenueResponse,
)
from .goal import (
    DepositRead,
    ManualDepositRequest,
    DepositResponse,
    GoalRead,
    GoalSaveRequest,
    GoalSaveResponse,
)
from .payment import CheckoutCreate, CheckoutResponse, PaymentConfirmRequest

__all__ = [
    "ActionItemRead",
    "AddressCreate",
    "AddressRead",
    "CancellationResponse",
    "CheckoutCreate",
    "CheckoutResponse",
    "DeliveryDetail",
    "DeliveryRead",
    "DeliveryStatusUpdate",
    "DeliveryTrackingRead",
    "DepositRead",
    "ManualDepositRequest",
    "DepositResponse",
    "EscrowHistoryRead",
    "EscrowOverviewResponse",
    "EscrowRead",
    "EscrowStatsRead",
    "EscrowSyncResponse",
    "GoalRead",
    "GoalSaveRequest",
    "GoalSaveResponse",
    "LocationUpdate",
    "PaymentConfirmRequest",
    "PayoutLineRead",
    "RedeemRequest",
    "RefundApprovalRequest",
    "RefundApprovalResponse",
    "RefundRead",
    "RefundRequestRead",
    "StoreDeliveryRead",
    "StoreRevenueResponse",
]
