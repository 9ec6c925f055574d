"""Goal and price lock ORM models."""
from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dreamsaver.models.base import Base, Money, TimestampMixin, new_id


class GoalStatus(str, enum.Enum):
    SAVED = "SAVED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    REDEEMED = "REDEEMED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


LIVE_GOAL_STATUSES = frozenset({GoalStatus.ACTIVE, GoalStatus.SAVED})


class PriceLockStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"


class Goal(TimestampMixin, Base):
    """A user's commitment to save toward one product."""

    __tablename__ = "goals"
    __table_args__ = (
        CheckConstraint("target_amount > 0", name="ck_goals_target_positive"),
        CheckConstraint("saved >= 0", name="ck_goals_saved_non_negative"),
        CheckConstraint("saved <= target_amount", name="ck_goals_saved_within_target"),
        Index("ix_goals_user_id", "user_id"),
        Index(
            "uq_goals_live_user_product",
            "user_id",
            "product_id",
            unique=True,
            postgresql_where=text("status IN ('ACTIVE', 'SAVED')"),
            sqlite_where=text("status IN ('ACTIVE', 'SAVED')"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    target_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    saved: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    locked_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[GoalStatus] = mapped_column(
        SAEnum(GoalStatus, name="goal_status"), nullable=False, default=GoalStatus.ACTIVE
    )
    # Target date while saving; stamped with the completion time once funded.
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user = relationship("User", back_populates="goals")
    product = relationship("Product")
    price_lock = relationship("PriceLock", back_populates="goal", uselist=False)
    deposits = relationship("Deposit", back_populates="goal", order_by="Deposit.created_at.desc()")
    escrow = relationship("Escrow", back_populates="goal", uselist=False)
    refund_request = relationship("RefundRequest", back_populates="goal", uselist=False)
    delivery = relationship("Delivery", back_populates="goal", uselist=False)

    __mapper_args__ = {"version_id_col": lock_version}


class PriceLock(TimestampMixin, Base):
    """Frozen product price for the lifetime of a goal."""

    __tablename__ = "price_locks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    goal_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    store_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("stores.id", ondelete="SET NULL"))
    locked_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    original_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    locked_by: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[PriceLockStatus] = mapped_column(
        SAEnum(PriceLockStatus, name="price_lock_status"), nullable=False, default=PriceLockStatus.ACTIVE
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    goal = relationship("Goal", back_populates="price_lock")


__all__ = ["Goal", "GoalStatus", "LIVE_GOAL_STATUSES", "PriceLock", "PriceLockStatus"]
