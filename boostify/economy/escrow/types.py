from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(slots=True, frozen=True)
class EscrowSplit:
    total_amount: Decimal
    platform_fee: Decimal
    booster_amount: Decimal


@dataclass(slots=True)
class EscrowSettlement:
    escrow_id: UUID
    order_id: UUID
    payment_status: str
    total_amount: Decimal
    refund_id: str | None = None
    refund_status: str | None = None
    refunded_to_balance: Decimal | None = None


@dataclass(slots=True)
class RefundRetryResult:
    escrow_id: UUID
    outcome: str
    refund_attempts: int
    error: str | None = None
