"""ORM models package."""
from .address import Address
from .audit_log import AuditLog
from .base import Base, Money, TimestampMixin
from .delivery import Delivery, DeliveryStatus, DeliveryTracking
from .deposit import Deposit, DepositStatus
from .escrow import Escrow, EscrowStatus
from .goal import LIVE_GOAL_STATUSES, Goal, GoalStatus, PriceLock, PriceLockStatus
from .notification import Notification, NotificationType
from .refund import Refund, RefundRequest, RefundRequestStatus, RefundStatus
from .store import Product, Store
from .user import User, UserRole

__all__ = [
    "Address",
    "AuditLog",
    "Base",
    "Delivery",
    "DeliveryStatus",
    "DeliveryTracking",
    "Deposit",
    "DepositStatus",
    "Escrow",
    "EscrowStatus",
    "Goal",
    "GoalStatus",
    "LIVE_GOAL_STATUSES",
    "Money",
    "Notification",
    "NotificationType",
    "PriceLock",
    "PriceLockStatus",
    "Product",
    "Refund",
    "RefundRequest",
    "RefundRequestStatus",
    "RefundStatus",
    "Store",
    "TimestampMixin",
    "User",
    "UserRole",
]
