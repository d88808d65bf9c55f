from decimal import Decimal

import pytest

from boostify.economy.wallet.errors import DepositBelowMinimumError, WalletValidationError
from boostify.economy.wallet.rules import compute_cashback, plan_balance_usage, validate_deposit_amount


def test_cashback_on_forty_is_one_dollar() -> None:
    assert compute_cashback(Decimal("40"), rate=Decimal("0.025")) == Decimal("1.00")


def test_cashback_rounds_to_cents() -> None:
    assert compute_cashback(Decimal("5"), rate=Decimal("0.025")) == Decimal("0.13")


def test_deposit_minimum_is_enforced() -> None:
    with pytest.raises(DepositBelowMinimumError, match=r"Minimum deposit amount is \$5"):
        validate_deposit_amount(Decimal("4.99"), minimum=Decimal("5"))


@pytest.mark.parametrize("amount", ["0", "-10"])
def test_deposit_must_be_positive(amount: str) -> None:
    with pytest.raises(WalletValidationError, match="greater than 0"):
        validate_deposit_amount(Decimal(amount), minimum=Decimal("5"))


def test_deposit_at_minimum_is_accepted() -> None:
    assert validate_deposit_amount(Decimal("5"), minimum=Decimal("5")) == Decimal("5.00")


def test_plan_without_balance_usage_charges_processor_for_everything() -> None:
    plan = plan_balance_usage(balance=Decimal("80"), final_amount=Decimal("45"), use_balance=False)
    assert plan.balance_to_use == Decimal("0.00")
    assert plan.processor_amount == Decimal("45.00")
    assert plan.fully_covered is False


def test_plan_fully_covered_by_balance() -> None:
    plan = plan_balance_usage(balance=Decimal("80"), final_amount=Decimal("45"), use_balance=True)
    assert plan.balance_to_use == Decimal("45.00")
    assert plan.processor_amount == Decimal("0.00")
    assert plan.fully_covered is True


def test_plan_partial_balance_leaves_remainder_for_processor() -> None:
    plan = plan_balance_usage(balance=Decimal("12.34"), final_amount=Decimal("45"), use_balance=True)
    assert plan.balance_to_use == Decimal("12.34")
    assert plan.processor_amount == Decimal("32.66")
