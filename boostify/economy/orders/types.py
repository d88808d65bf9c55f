from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from boostify.db.models.orders import Order
from boostify.db.models.payment_transactions import PaymentTransaction
from boostify.economy.escrow.types import EscrowSettlement

DEFAULT_GAME = "clash-royale"


@dataclass(slots=True, frozen=True)
class ServiceDetails:
    game: str = DEFAULT_GAME
    service_category: str = ""
    game_account: str = ""
    current_level: str = ""
    target_level: str = ""
    estimated_time: str | None = None
    addons: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class OrderCreateResult:
    order: Order
    created: bool


@dataclass(slots=True)
class ClaimResult:
    order: Order
    escrow: PaymentTransaction


@dataclass(slots=True)
class OrderSettlementResult:
    order: Order
    settlement: EscrowSettlement


@dataclass(slots=True)
class BoosterOrdersSummary:
    orders: list[Order]
    total_orders: int
    completed_orders: int
    active_orders: int
    total_earnings: Decimal


@dataclass(slots=True)
class CustomerOrdersSummary:
    orders: list[Order]
    total_orders: int
    total_spent: Decimal
    active_services: int


@dataclass(slots=True)
class CheckoutResult:
    paid_with_balance: bool
    balance_used: Decimal
    processor_amount: Decimal
    balance_after: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    coupon_applied: bool
    payment_intent_id: str | None = None
    client_secret: str | None = None
    order: Order | None = None
