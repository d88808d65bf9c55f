from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from boostify.db.models.balance_transactions import BalanceTransaction


class BalanceTransactionsRepo:
    @staticmethod
    async def create(session: AsyncSession, *, entry: BalanceTransaction) -> BalanceTransaction:
        session.add(entry)
        await session.flush()
        return entry

    @staticmethod
    async def get_by_reference(
        session: AsyncSession,
        *,
        reference_id: str,
        reference_type: str,
        transaction_type: str | None = None,
    ) -> BalanceTransaction | None:
        stmt = (
            select(BalanceTransaction)
            .where(
                BalanceTransaction.reference_id == reference_id,
                BalanceTransaction.reference_type == reference_type,
            )
            .order_by(BalanceTransaction.id.asc())
            .limit(1)
        )
        if transaction_type is not None:
            stmt = stmt.where(BalanceTransaction.transaction_type == transaction_type)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_user(
        session: AsyncSession,
        *,
        user_id: UUID,
        limit: int,
        offset: int,
        transaction_type: str | None = None,
    ) -> list[BalanceTransaction]:
        stmt = (
            select(BalanceTransaction)
            .where(BalanceTransaction.user_id == user_id)
            .order_by(BalanceTransaction.created_at.desc(), BalanceTransaction.id.desc())
            .offset(offset)
            .limit(limit)
        )
        if transaction_type is not None:
            stmt = stmt.where(BalanceTransaction.transaction_type == transaction_type)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_for_user(
        session: AsyncSession,
        *,
        user_id: UUID,
        transaction_type: str | None = None,
    ) -> int:
        stmt = select(func.count(BalanceTransaction.id)).where(BalanceTransaction.user_id == user_id)
        if transaction_type is not None:
            stmt = stmt.where(BalanceTransaction.transaction_type == transaction_type)
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def list_chronological_for_user(session: AsyncSession, *, user_id: UUID) -> list[BalanceTransaction]:
        stmt = (
            select(BalanceTransaction)
            .where(BalanceTransaction.user_id == user_id)
            .order_by(BalanceTransaction.created_at.asc(), BalanceTransaction.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
