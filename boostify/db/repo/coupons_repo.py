from __future__ import annotations

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boostify.db.models.coupon_usages import CouponUsage
from boostify.db.models.coupons import Coupon


class CouponsRepo:
    @staticmethod
    async def get_active_by_code(session: AsyncSession, code: str) -> Coupon | None:
        stmt = select(Coupon).where(Coupon.code == code, Coupon.is_active.is_(True))
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def increment_usage(session: AsyncSession, *, coupon_id: int) -> bool:
        """Atomically bump usage_count unless the usage limit is already reached."""
        stmt = (
            update(Coupon)
            .where(
                Coupon.id == coupon_id,
                or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
            )
            .values(usage_count=Coupon.usage_count + 1)
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0) == 1

    @staticmethod
    async def create_usage(session: AsyncSession, *, usage: CouponUsage) -> CouponUsage:
        session.add(usage)
        await session.flush()
        return usage
