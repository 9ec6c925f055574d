"""Money arithmetic and settlement splits.

All figures are ``Decimal``. Rounding to cents (half up) happens only where a
figure is persisted or returned, and the last share of every split is taken
as the remainder so the parts always add back up to the whole.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from dreamsaver.services.errors import InvalidAmountError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Numeric(18, 2) leaves sixteen digits before the decimal point.
MAX_INTEGER_DIGITS = 16

RELEASE_FEE_RATE = Decimal("0.05")
REFUND_PLATFORM_RATE = Decimal("0.10")
REFUND_STORE_RATE = Decimal("0.10")


@dataclass(slots=True, frozen=True)
class ReleaseSplit:
    platform_fee: Decimal
    net_amount: Decimal


@dataclass(slots=True, frozen=True)
class RefundSplit:
    user_share: Decimal
    admin_share: Decimal
    store_share: Decimal

    @property
    def penalty(self) -> Decimal:
        return self.admin_share + self.store_share


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    """Coerce ``value`` to ``Decimal`` without binary float artefacts."""

    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as exc:
            raise InvalidAmountError(f"'{value}' is not a valid amount") from exc
    if not result.is_finite():
        raise InvalidAmountError(f"'{value}' is not a valid amount")
    return result


def quantize_money(value: Decimal | int | float | str | None) -> Decimal:
    """Round to cents, rejecting figures too large for a money column."""

    money = to_money(value)
    if money and money.adjusted() >= MAX_INTEGER_DIGITS:
        raise InvalidAmountError(f"'{value}' exceeds the largest supported amount")
    try:
        return money.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise InvalidAmountError(f"'{value}' is not a valid amount") from exc


def split_release(amount: Decimal | int | float | str) -> ReleaseSplit:
    """Split a released escrow into the platform fee and the store payout."""

    total = quantize_money(amount)
    fee = quantize_money(total * RELEASE_FEE_RATE)
    return ReleaseSplit(platform_fee=fee, net_amount=total - fee)


def split_refund(amount: Decimal | int | float | str) -> RefundSplit:
    """Split a refunded escrow into user, platform and store shares."""

    total = quantize_money(amount)
    admin_share = quantize_money(total * REFUND_PLATFORM_RATE)
    store_share = quantize_money(total * REFUND_STORE_RATE)
    return RefundSplit(
        user_share=total - admin_share - store_share,
        admin_share=admin_share,
        store_share=store_share,
    )


def remaining(target: Decimal | int | float | str, saved: Decimal | int | float | str) -> Decimal:
    return quantize_money(max(ZERO, to_money(target) - to_money(saved)))


def progress_percent(saved: Decimal | int | float | str, target: Decimal | int | float | str) -> Decimal:
    target_value = to_money(target)
    if target_value <= 0:
        return ZERO
    return quantize_money(to_money(saved) / target_value * 100)


__all__ = [
    "CENT",
    "MAX_INTEGER_DIGITS",
    "RELEASE_FEE_RATE",
    "REFUND_PLATFORM_RATE",
    "REFUND_STORE_RATE",
    "RefundSplit",
    "ReleaseSplit",
    "ZERO",
    "progress_percent",
    "quantize_money",
    "remaining",
    "split_refund",
    "split_release",
    "to_money",
]
