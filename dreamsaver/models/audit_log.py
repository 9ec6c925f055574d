"""Audit trail for money-moving decisions."""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, JSON, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dreamsaver.models.base import Base, TimestampMixin, new_id


class AuditLog(TimestampMixin, Base):
    """One row per cancellation, release, refund approval or escrow sync.

    ``goal_id`` is a plain column so the trail outlives a hard-deleted goal.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_resource", "resource_type", "resource_id"),
        Index("ix_audit_logs_goal_id", "goal_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    actor_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    action: Mapped[str] = mapped_column(String(128), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(128), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(128))
    goal_id: Mapped[str | None] = mapped_column(String(36))
    amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2))
    payload: Mapped[dict | None] = mapped_column(JSON)
    ip_address: Mapped[str | None] = mapped_column(String(64))

    actor = relationship("User")


__all__ = ["AuditLog"]
