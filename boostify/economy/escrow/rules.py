from __future__ import annotations

from decimal import Decimal

from boostify.core.money import to_money
from boostify.economy.escrow.types import EscrowSplit

SETTLED_STATUSES = frozenset({"transferred", "refunded"})


def split_amount(total_amount: Decimal, *, fee_rate: Decimal) -> EscrowSplit:
    total = to_money(total_amount)
    platform_fee = to_money(total * fee_rate)
    return EscrowSplit(
        total_amount=total,
        platform_fee=platform_fee,
        booster_amount=total - platform_fee,
    )


def is_settled(payment_status: str) -> bool:
    return payment_status in SETTLED_STATUSES
