"""Deposit ORM model."""
from __future__ import annotations

import enum
from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dreamsaver.models.base import Base, Money, TimestampMixin, new_id


class DepositStatus(str, enum.Enum):
    COMPLETED = "COMPLETED"


class Deposit(TimestampMixin, Base):
    """Immutable funding event applied to a goal."""

    __tablename__ = "deposits"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_deposits_amount_positive"),
        Index("ix_deposits_goal_id", "goal_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    goal_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("goals.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="STRIPE")
    status: Mapped[DepositStatus] = mapped_column(
        SAEnum(DepositStatus, name="deposit_status"), nullable=False, default=DepositStatus.COMPLETED
    )
    receipt_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, default=new_id)
    # Derived from the payment session; a repeated confirmation collides here.
    idempotency_key: Mapped[str | None] = mapped_column(String(128), unique=True)

    goal = relationship("Goal", back_populates="deposits")


__all__ = ["Deposit", "DepositStatus"]
