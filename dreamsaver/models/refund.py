"""Refund request and refund ORM models."""
from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dreamsaver.models.base import Base, Money, TimestampMixin, new_id


class RefundRequestStatus(str, enum.Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"


class RefundStatus(str, enum.Enum):
    COMPLETED = "COMPLETED"


class RefundRequest(TimestampMixin, Base):
    """Cancellation ticket awaiting admin disposition."""

    __tablename__ = "refund_requests"
    __table_args__ = (Index("ix_refund_requests_status", "status"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    goal_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[RefundRequestStatus] = mapped_column(
        SAEnum(RefundRequestStatus, name="refund_request_status"),
        nullable=False,
        default=RefundRequestStatus.REQUESTED,
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    admin_id: Mapped[str | None] = mapped_column(String(64))
    response_note: Mapped[str | None] = mapped_column(Text)

    goal = relationship("Goal", back_populates="refund_request")
    user = relationship("User")


class Refund(TimestampMixin, Base):
    """User-visible outcome of an approved refund request."""

    __tablename__ = "refunds"
    __table_args__ = (Index("ix_refunds_user_id", "user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    goal_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("goals.id", ondelete="CASCADE"), nullable=False
    )
    store_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("stores.id", ondelete="SET NULL"))
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[RefundStatus] = mapped_column(
        SAEnum(RefundStatus, name="refund_status"), nullable=False, default=RefundStatus.COMPLETED
    )


__all__ = ["Refund", "RefundRequest", "RefundRequestStatus", "RefundStatus"]
