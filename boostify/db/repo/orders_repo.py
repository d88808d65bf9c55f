from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boostify.db.models.orders import Order

ACTIVE_ORDER_STATUSES = ("pending", "processing")


class OrdersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, order_id: UUID) -> Order | None:
        return await session.get(Order, order_id)

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, order_id: UUID) -> Order | None:
        stmt = select(Order).where(Order.id == order_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_payment_intent_id(session: AsyncSession, payment_intent_id: str) -> Order | None:
        stmt = select(Order).where(Order.payment_intent_id == payment_intent_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, order: Order, created_at: datetime) -> Order:
        order.created_at = created_at
        session.add(order)
        await session.flush()
        return order

    @staticmethod
    async def claim_pending(
        session: AsyncSession,
        *,
        order_id: UUID,
        booster_id: UUID,
        claimed_at: datetime,
    ) -> Order | None:
        """Compare-and-set claim. Returns None when zero rows matched the pending predicate."""
        stmt = (
            update(Order)
            .where(
                Order.id == order_id,
                Order.status == "pending",
                Order.booster_id.is_(None),
            )
            .values(
                booster_id=booster_id,
                claimed_at=claimed_at,
                status="processing",
                updated_at=claimed_at,
            )
            .returning(Order)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_available(session: AsyncSession, *, limit: int = 50) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.status == "pending", Order.booster_id.is_(None))
            .order_by(Order.created_at.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_by_booster(session: AsyncSession, *, booster_id: UUID, limit: int = 50) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.booster_id == booster_id)
            .order_by(Order.claimed_at.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_by_user(session: AsyncSession, *, user_id: UUID, limit: int = 10) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_by_booster_and_status(session: AsyncSession, *, booster_id: UUID) -> dict[str, int]:
        stmt = (
            select(Order.status, func.count(Order.id))
            .where(Order.booster_id == booster_id)
            .group_by(Order.status)
        )
        result = await session.execute(stmt)
        return {str(status): int(count) for status, count in result.all()}

    @staticmethod
    async def sum_completed_amount_for_booster(session: AsyncSession, *, booster_id: UUID) -> Decimal:
        stmt = select(func.coalesce(func.sum(Order.amount), 0)).where(
            Order.booster_id == booster_id,
            Order.status == "completed",
        )
        result = await session.execute(stmt)
        return Decimal(result.scalar_one() or 0)

    @staticmethod
    async def summarize_for_user(session: AsyncSession, *, user_id: UUID) -> tuple[int, Decimal, int]:
        stmt = select(
            func.count(Order.id),
            func.coalesce(func.sum(Order.amount), 0),
            func.count(Order.id).filter(Order.status.in_(ACTIVE_ORDER_STATUSES)),
        ).where(Order.user_id == user_id)
        result = await session.execute(stmt)
        total_orders, total_spent, active = result.one()
        return int(total_orders or 0), Decimal(total_spent or 0), int(active or 0)
