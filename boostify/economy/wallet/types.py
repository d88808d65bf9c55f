from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from boostify.db.models.balance_transactions import BalanceTransaction


@dataclass(slots=True, frozen=True)
class BalancePlan:
    balance_to_use: Decimal
    processor_amount: Decimal

    @property
    def fully_covered(self) -> bool:
        return self.processor_amount == 0


@dataclass(slots=True)
class WalletBalance:
    balance: Decimal
    cashback: Decimal


@dataclass(slots=True)
class DepositInitResult:
    payment_intent_id: str
    client_secret: str | None
    amount: Decimal
    cashback_amount: Decimal


@dataclass(slots=True)
class DepositApplyResult:
    payment_intent_id: str
    user_id: UUID
    deposit_amount: Decimal
    cashback_amount: Decimal
    balance_after: Decimal
    idempotent_replay: bool


@dataclass(slots=True)
class TransactionsPage:
    items: list[BalanceTransaction]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total


@dataclass(slots=True)
class DepositSyncResult:
    processed: list[DepositApplyResult] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)
