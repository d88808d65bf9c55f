from __future__ import annotations

from decimal import Decimal

from boostify.core.money import ZERO, to_money
from boostify.economy.wallet.errors import DepositBelowMinimumError, WalletValidationError
from boostify.economy.wallet.types import BalancePlan


def validate_deposit_amount(amount: Decimal, *, minimum: Decimal) -> Decimal:
    if amount <= 0:
        raise WalletValidationError("Invalid amount. Amount must be greater than 0")
    if amount < minimum:
        raise DepositBelowMinimumError(f"Minimum deposit amount is ${minimum.normalize():f}")
    return to_money(amount)


def compute_cashback(amount: Decimal, *, rate: Decimal) -> Decimal:
    return to_money(amount * rate)


def plan_balance_usage(*, balance: Decimal, final_amount: Decimal, use_balance: bool) -> BalancePlan:
    final_amount = to_money(final_amount)
    if not use_balance or balance <= 0:
        return BalancePlan(balance_to_use=ZERO, processor_amount=final_amount)

    balance_to_use = to_money(min(balance, final_amount))
    return BalancePlan(
        balance_to_use=balance_to_use,
        processor_amount=to_money(max(ZERO, final_amount - balance_to_use)),
    )
