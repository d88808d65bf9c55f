from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from boostify.core.audit import get_audit_sink
from boostify.core.money import to_money
from boostify.db.models.orders import Order
from boostify.db.repo.orders_repo import OrdersRepo
from boostify.economy.escrow.service import EscrowService
from boostify.economy.orders.errors import (
    OrderAlreadyClaimedError,
    OrderForbiddenError,
    OrderNotFoundError,
)
from boostify.economy.orders.state_machine import ACTIVE_STATUSES, next_status_for
from boostify.economy.orders.types import (
    BoosterOrdersSummary,
    ClaimResult,
    CustomerOrdersSummary,
    OrderSettlementResult,
)
from boostify.services.chat import ensure_order_chat
from boostify.services.payments import StripePaymentProcessor

logger = structlog.get_logger(__name__)

AVAILABLE_ORDERS_LIMIT = 50
CUSTOMER_ORDERS_LIMIT = 10
DEFAULT_REJECTION_REASON = "Customer rejection"


class OrderService:
    @staticmethod
    def _record_transition(order: Order, *, from_status: str, actor_id: UUID, action: str) -> None:
        get_audit_sink().record(
            "order_transitioned",
            order_id=order.id,
            action=action,
            from_status=from_status,
            to_status=order.status,
            actor_id=actor_id,
        )

    @staticmethod
    async def _get_for_update(session: AsyncSession, order_id: UUID) -> Order:
        order = await OrdersRepo.get_by_id_for_update(session, order_id)
        if order is None:
            raise OrderNotFoundError("Order not found")
        return order

    @staticmethod
    async def claim(
        session: AsyncSession,
        *,
        order_id: UUID,
        booster_id: UUID,
        now_utc: datetime,
    ) -> ClaimResult:
        order = await OrdersRepo.get_by_id(session, order_id)
        if order is None:
            raise OrderNotFoundError("Order not found")
        if order.status == "processing" and order.booster_id not in (None, booster_id):
            raise OrderAlreadyClaimedError(
                f"Order has already been claimed by another booster (status: {order.status})"
            )
        next_status_for("claim", order.status)
        if order.booster_id is not None:
            raise OrderAlreadyClaimedError(
                f"Order has already been claimed by another booster (status: {order.status})"
            )

        claimed = await OrdersRepo.claim_pending(
            session,
            order_id=order_id,
            booster_id=booster_id,
            claimed_at=now_utc,
        )
        if claimed is None:
            logger.info("order_claim_lost_race", order_id=str(order_id), booster_id=str(booster_id))
            raise OrderAlreadyClaimedError(
                "Order was already claimed by another booster. Please refresh and try again."
            )

        escrow = await EscrowService.open_for_order(session, order=claimed, now_utc=now_utc)
        await ensure_order_chat(
            session,
            order_id=claimed.id,
            customer_id=claimed.user_id,
            booster_id=booster_id,
            now_utc=now_utc,
        )
        OrderService._record_transition(claimed, from_status="pending", actor_id=booster_id, action="claim")
        return ClaimResult(order=claimed, escrow=escrow)

    @staticmethod
    async def complete(
        session: AsyncSession,
        *,
        order_id: UUID,
        booster_id: UUID,
        now_utc: datetime,
    ) -> Order:
        order = await OrderService._get_for_update(session, order_id)
        if order.booster_id != booster_id:
            raise OrderForbiddenError("Forbidden - This order does not belong to you")

        from_status = order.status
        order.status = next_status_for("complete", from_status)
        order.updated_at = now_utc
        OrderService._record_transition(order, from_status=from_status, actor_id=booster_id, action="complete")
        return order

    @staticmethod
    async def approve(
        session: AsyncSession,
        *,
        order_id: UUID,
        customer_id: UUID,
        now_utc: datetime,
    ) -> OrderSettlementResult:
        order = await OrderService._get_for_update(session, order_id)
        if order.user_id != customer_id:
            raise OrderForbiddenError("Forbidden - This order does not belong to you")

        from_status = order.status
        to_status = next_status_for("approve", from_status)
        settlement = await EscrowService.settle_approve(session, order_id=order.id, now_utc=now_utc)

        order.status = to_status
        order.customer_approved_at = now_utc
        order.updated_at = now_utc
        OrderService._record_transition(order, from_status=from_status, actor_id=customer_id, action="approve")
        return OrderSettlementResult(order=order, settlement=settlement)

    @staticmethod
    async def reject(
        session: AsyncSession,
        *,
        order_id: UUID,
        customer_id: UUID,
        reason: str | None,
        processor: StripePaymentProcessor,
        now_utc: datetime,
    ) -> OrderSettlementResult:
        order = await OrderService._get_for_update(session, order_id)
        if order.user_id != customer_id:
            raise OrderForbiddenError("Forbidden - This order does not belong to you")

        from_status = order.status
        to_status = next_status_for("reject", from_status)
        rejection_reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
        settlement = await EscrowService.settle_reject(
            session,
            order_id=order.id,
            reason=rejection_reason,
            processor=processor,
            now_utc=now_utc,
        )

        order.status = to_status
        order.customer_rejected_at = now_utc
        order.rejection_reason = rejection_reason
        order.updated_at = now_utc
        OrderService._record_transition(order, from_status=from_status, actor_id=customer_id, action="reject")
        return OrderSettlementResult(order=order, settlement=settlement)

    @staticmethod
    async def list_available(session: AsyncSession) -> list[Order]:
        return await OrdersRepo.list_available(session, limit=AVAILABLE_ORDERS_LIMIT)

    @staticmethod
    async def booster_summary(session: AsyncSession, *, booster_id: UUID) -> BoosterOrdersSummary:
        orders = await OrdersRepo.list_by_booster(session, booster_id=booster_id, limit=AVAILABLE_ORDERS_LIMIT)
        counts = await OrdersRepo.count_by_booster_and_status(session, booster_id=booster_id)
        total_earnings = await OrdersRepo.sum_completed_amount_for_booster(session, booster_id=booster_id)
        return BoosterOrdersSummary(
            orders=orders,
            total_orders=sum(counts.values()),
            completed_orders=counts.get("completed", 0),
            active_orders=sum(count for status, count in counts.items() if status in ACTIVE_STATUSES),
            total_earnings=to_money(total_earnings),
        )

    @staticmethod
    async def customer_summary(session: AsyncSession, *, user_id: UUID) -> CustomerOrdersSummary:
        orders = await OrdersRepo.list_by_user(session, user_id=user_id, limit=CUSTOMER_ORDERS_LIMIT)
        total_orders, total_spent, active = await OrdersRepo.summarize_for_user(session, user_id=user_id)
        return CustomerOrdersSummary(
            orders=orders,
            total_orders=total_orders,
            total_spent=to_money(total_spent),
            active_services=active,
        )

