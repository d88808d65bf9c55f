from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from boostify.db.models.payment_transactions import PaymentTransaction


class PaymentTransactionsRepo:
    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, escrow_id: UUID) -> PaymentTransaction | None:
        stmt = select(PaymentTransaction).where(PaymentTransaction.id == escrow_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_order_id(session: AsyncSession, order_id: UUID) -> PaymentTransaction | None:
        stmt = select(PaymentTransaction).where(PaymentTransaction.order_id == order_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_order_id_for_update(
        session: AsyncSession,
        order_id: UUID,
    ) -> PaymentTransaction | None:
        stmt = (
            select(PaymentTransaction)
            .where(PaymentTransaction.order_id == order_id)
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, escrow: PaymentTransaction) -> PaymentTransaction:
        session.add(escrow)
        await session.flush()
        return escrow

    @staticmethod
    async def list_failed_refund_ids(
        session: AsyncSession,
        *,
        max_attempts: int,
        limit: int = 100,
    ) -> list[UUID]:
        stmt = (
            select(PaymentTransaction.id)
            .where(
                PaymentTransaction.payment_status == "refunded",
                PaymentTransaction.refund_status == "failed",
                PaymentTransaction.refund_attempts < max_attempts,
            )
            .order_by(PaymentTransaction.refunded_at.asc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def sum_transferred_total_for_booster(session: AsyncSession, *, booster_id: UUID) -> Decimal:
        stmt = select(func.coalesce(func.sum(PaymentTransaction.total_amount), 0)).where(
            PaymentTransaction.booster_id == booster_id,
            PaymentTransaction.payment_status == "transferred",
        )
        result = await session.execute(stmt)
        return Decimal(result.scalar_one() or 0)
