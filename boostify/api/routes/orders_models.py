from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from boostify.db.models.orders import Order
from boostify.db.models.payment_transactions import PaymentTransaction
from boostify.economy.escrow.types import EscrowSettlement
from boostify.economy.orders.types import ServiceDetails

from .api_models import ApiModel, Money


class OrderDetailsPayload(ApiModel):
    game: str = Field(default="clash-royale", min_length=1, max_length=64)
    category: str = Field(default="", max_length=64)
    game_account: str = Field(default="", max_length=512)
    current_level: str = Field(default="", max_length=64)
    target_level: str = Field(default="", max_length=64)
    addons: dict[str, object] = Field(default_factory=dict)

    def to_service_details(self, *, estimated_time: str | None) -> ServiceDetails:
        return ServiceDetails(
            game=self.game,
            service_category=self.category,
            game_account=self.game_account,
            current_level=self.current_level,
            target_level=self.target_level,
            estimated_time=estimated_time,
            addons=dict(self.addons),
        )


class ClaimOrderRequest(ApiModel):
    order_id: UUID


class RejectOrderRequest(ApiModel):
    reason: str | None = Field(default=None, max_length=1000)


class CreateOrderRequest(ApiModel):
    payment_intent_id: str = Field(min_length=1, max_length=128)


class CreateBalanceOrderRequest(ApiModel):
    order_data: OrderDetailsPayload
    total_amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    estimated_time: str | None = Field(default=None, max_length=64)
    booster_id: UUID | None = None
    coupon_code: str | None = Field(default=None, max_length=64)


class OrderResponse(ApiModel):
    id: UUID
    user_id: UUID
    booster_id: UUID | None = None
    status: str
    amount: Money
    currency: str
    payment_method: str
    payment_status: str
    balance_used: Money
    game: str
    service_category: str
    game_account: str
    current_level: str
    target_level: str
    estimated_time: str | None = None
    coupon_code: str | None = None
    discount_amount: Money
    addons: dict[str, object]
    payment_intent_id: str | None = None
    rejection_reason: str | None = None
    created_at: datetime
    claimed_at: datetime | None = None
    customer_approved_at: datetime | None = None
    customer_rejected_at: datetime | None = None

    @classmethod
    def from_order(cls, order: Order) -> OrderResponse:
        return cls(
            id=order.id,
            user_id=order.user_id,
            booster_id=order.booster_id,
            status=order.status,
            amount=order.amount,
            currency=order.currency,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            balance_used=order.balance_used,
            game=order.game,
            service_category=order.service_category,
            game_account=order.game_account,
            current_level=order.current_level,
            target_level=order.target_level,
            estimated_time=order.estimated_time,
            coupon_code=order.coupon_code,
            discount_amount=order.discount_amount,
            addons=order.addons or {},
            payment_intent_id=order.payment_intent_id,
            rejection_reason=order.rejection_reason,
            created_at=order.created_at,
            claimed_at=order.claimed_at,
            customer_approved_at=order.customer_approved_at,
            customer_rejected_at=order.customer_rejected_at,
        )


class EscrowSummary(ApiModel):
    id: UUID
    payment_status: str
    total_amount: Money
    platform_fee: Money
    booster_amount: Money

    @classmethod
    def from_escrow(cls, escrow: PaymentTransaction) -> EscrowSummary:
        return cls(
            id=escrow.id,
            payment_status=escrow.payment_status,
            total_amount=escrow.total_amount,
            platform_fee=escrow.platform_fee,
            booster_amount=escrow.booster_amount,
        )


class ClaimOrderResponse(ApiModel):
    message: str = "Order claimed successfully"
    order: OrderResponse
    escrow: EscrowSummary


class OrderActionResponse(ApiModel):
    message: str
    order: OrderResponse


class SettlementResponse(ApiModel):
    message: str
    order: OrderResponse
    payment_status: str
    refund_id: str | None = None
    refund_status: str | None = None
    refunded_to_balance: Money | None = None

    @classmethod
    def from_result(cls, *, message: str, order: Order, settlement: EscrowSettlement) -> SettlementResponse:
        return cls(
            message=message,
            order=OrderResponse.from_order(order),
            payment_status=settlement.payment_status,
            refund_id=settlement.refund_id,
            refund_status=settlement.refund_status,
            refunded_to_balance=settlement.refunded_to_balance,
        )


class OrderCreatedResponse(ApiModel):
    message: str
    order_id: UUID
    order: OrderResponse


class OrdersListResponse(ApiModel):
    orders: list[OrderResponse]


class BoosterOrdersResponse(ApiModel):
    orders: list[OrderResponse]
    total_orders: int = Field(ge=0)
    completed_orders: int = Field(ge=0)
    active_orders: int = Field(ge=0)
    total_earnings: Money


class CustomerOrdersResponse(ApiModel):
    orders: list[OrderResponse]
    total_orders: int = Field(ge=0)
    total_spent: Money
    active_services: int = Field(ge=0)
