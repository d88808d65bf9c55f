from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from boostify.db.models.balance_transactions import BalanceTransaction

from .api_models import ApiModel, Money
from .orders_models import OrderDetailsPayload, OrderResponse


class BalanceResponse(ApiModel):
    balance: Money
    cashback: Money


class DepositRequest(ApiModel):
    amount: Decimal = Field(max_digits=12, decimal_places=2)


class DepositResponse(ApiModel):
    client_secret: str | None = None
    payment_intent_id: str
    amount: Money
    cashback_amount: Money


class DepositSuccessRequest(ApiModel):
    payment_intent_id: str = Field(min_length=1, max_length=128)


class DepositSuccessResponse(ApiModel):
    success: bool = True
    message: str
    deposit_amount: Money
    cashback_amount: Money
    balance_after: Money


class BalanceTransactionResponse(ApiModel):
    id: int
    transaction_type: str
    amount: Money
    balance_before: Money
    balance_after: Money
    cashback_amount: Money | None = None
    description: str
    reference_id: str | None = None
    reference_type: str | None = None
    metadata: dict[str, object]
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: BalanceTransaction) -> BalanceTransactionResponse:
        return cls(
            id=entry.id,
            transaction_type=entry.transaction_type,
            amount=entry.amount,
            balance_before=entry.balance_before,
            balance_after=entry.balance_after,
            cashback_amount=entry.cashback_amount,
            description=entry.description,
            reference_id=entry.reference_id,
            reference_type=entry.reference_type,
            metadata=entry.metadata_ or {},
            created_at=entry.created_at,
        )


class PaginationResponse(ApiModel):
    total: int = Field(ge=0)
    limit: int = Field(ge=1)
    offset: int = Field(ge=0)
    has_more: bool


class BalanceTransactionsResponse(ApiModel):
    transactions: list[BalanceTransactionResponse]
    pagination: PaginationResponse


class CheckDepositResponse(ApiModel):
    is_deposit: bool
    metadata: dict[str, str]


class UsePaymentRequest(ApiModel):
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    currency: str = Field(default="usd", min_length=3, max_length=3)
    order_data: OrderDetailsPayload = Field(default_factory=OrderDetailsPayload)
    estimated_time: str | None = Field(default=None, max_length=64)
    booster_id: UUID | None = None
    coupon_code: str | None = Field(default=None, max_length=64)
    use_balance: bool = False


class UsePaymentResponse(ApiModel):
    success: bool = True
    paid_with_balance: bool
    balance_used: Money
    stripe_amount: Money
    balance_after: Money
    payment_intent_id: str | None = None
    client_secret: str | None = None
    coupon_applied: bool
    discount_amount: Money
    final_amount: Money
    order_id: UUID | None = None
    order: OrderResponse | None = None


class ProcessedDepositResponse(ApiModel):
    payment_intent_id: str
    amount: Money
    balance_after: Money


class DepositSyncErrorResponse(ApiModel):
    payment_intent_id: str
    error: str


class ManualUpdateResponse(ApiModel):
    success: bool = True
    processed_count: int = Field(ge=0)
    processed_deposits: list[ProcessedDepositResponse]
    errors: list[DepositSyncErrorResponse]
