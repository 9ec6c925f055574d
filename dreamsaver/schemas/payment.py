"""Schemas for hosted checkout and payment confirmation."""
from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class CheckoutCreate(BaseModel):
    amount: Decimal = Field(..., max_digits=18)


class CheckoutResponse(BaseModel):
    session_id: str
    checkout_url: str | None


class PaymentConfirmRequest(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=255)
    amount: Decimal | None = Field(
        default=None,
        max_digits=18,
        description="Amount from the success redirect; verified against the gateway, never trusted",
    )


__all__ = ["CheckoutCreate", "CheckoutResponse", "PaymentConfirmRequest"]
