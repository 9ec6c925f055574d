"""Schemas for goals and deposits."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from dreamsaver.models import DepositStatus, GoalStatus
from dreamsaver.services import ledger


class GoalSaveRequest(BaseModel):
    """Commit to a product, or re-price the live goal already open for it."""

    product_id: str = Field(..., min_length=1, max_length=36)
    target_amount: Decimal = Field(..., max_digits=18, description="Amount to save; must be positive")
    target_date: datetime | None = Field(default=None, description="Date the customer plans to finish saving")
    status: GoalStatus = Field(default=GoalStatus.ACTIVE, description="ACTIVE or SAVED (draft)")


class DepositRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    goal_id: str
    amount: Decimal
    payment_method: str
    status: DepositStatus
    receipt_number: str
    created_at: datetime


class GoalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    product_id: str
    target_amount: Decimal
    saved: Decimal
    locked_price: Decimal
    status: GoalStatus
    end_date: datetime | None
    created_at: datetime
    updated_at: datetime
    deposits: list[DepositRead] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def remaining(self) -> Decimal:
        return ledger.remaining(self.target_amount, self.saved)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def progress_percent(self) -> Decimal:
        return ledger.progress_percent(self.saved, self.target_amount)


class GoalSaveResponse(BaseModel):
    goal: GoalRead
    created: bool


class ManualDepositRequest(BaseModel):
    """Cash or bank transfer taken by staff and credited to a goal by an admin."""

    amount: Decimal = Field(..., max_digits=18, description="Deposit amount; must not exceed the remaining target")
    payment_method: str = Field(default="MANUAL", min_length=1, max_length=32)


class DepositResponse(BaseModel):
    goal: GoalRead
    deposit: DepositRead
    completed: bool
    duplicate: bool


__all__ = [
    "DepositRead",
    "ManualDepositRequest",
    "DepositResponse",
    "GoalRead",
    "GoalSaveRequest",
    "GoalSaveResponse",
]
