from __future__ import annotations

from decimal import Decimal

import pytest

from dreamsaver.services.errors import InvalidAmountError
from dreamsaver.services.ledger import (
    progress_percent,
    quantize_money,
    remaining,
    split_refund,
    split_release,
    to_money,
)


def test_release_split_takes_five_percent_fee() -> None:
    split = split_release(Decimal("1000"))

    assert split.platform_fee == Decimal("50.00")
    assert split.net_amount == Decimal("950.00")


def test_refund_split_returns_eighty_percent_to_user() -> None:
    split = split_refund(Decimal("500"))

    assert split.user_share == Decimal("400.00")
    assert split.admin_share == Decimal("50.00")
    assert split.store_share == Decimal("50.00")
    assert split.penalty == Decimal("100.00")


@pytest.mark.parametrize("amount", ["0.01", "0.05", "33.33", "999.99", "1234.57"])
def test_splits_always_add_back_to_the_total(amount: str) -> None:
    total = Decimal(amount)

    release = split_release(total)
    refund = split_refund(total)

    assert release.platform_fee + release.net_amount == total
    assert refund.user_share + refund.admin_share + refund.store_share == total


def test_rounding_is_half_up_to_cents() -> None:
    assert quantize_money("10.005") == Decimal("10.01")
    assert quantize_money("10.004") == Decimal("10.00")
    # 5% of 0.10 is 0.005 which rounds up to a cent.
    assert split_release("0.10").platform_fee == Decimal("0.01")


def test_to_money_avoids_float_artefacts() -> None:
    assert to_money(0.1) + to_money(0.2) == Decimal("0.3")
    assert to_money(None) == Decimal("0.00")


@pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
def test_to_money_rejects_non_numbers(value: str) -> None:
    with pytest.raises(InvalidAmountError):
        to_money(value)


def test_remaining_and_progress() -> None:
    assert remaining(Decimal("1000"), Decimal("400")) == Decimal("600.00")
    assert remaining(Decimal("1000"), Decimal("1000")) == Decimal("0.00")
    assert progress_percent(Decimal("400"), Decimal("1000")) == Decimal("40.00")
    assert progress_percent(Decimal("1"), Decimal("3")) == Decimal("33.33")
    assert progress_percent(Decimal("10"), Decimal("0")) == Decimal("0.00")


@pytest.mark.parametrize("value", ["1e30", "12345678901234567", "-1e16"])
def test_quantize_money_rejects_amounts_wider_than_the_column(value: str) -> None:
    with pytest.raises(InvalidAmountError):
        quantize_money(value)


def test_quantize_money_accepts_the_largest_column_value() -> None:
    assert quantize_money("9999999999999999.99") == Decimal("9999999999999999.99")
