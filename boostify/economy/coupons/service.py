from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from boostify.core.audit import get_audit_sink
from boostify.core.money import to_money
from boostify.db.models.coupon_usages import CouponUsage
from boostify.db.models.coupons import Coupon
from boostify.db.repo.coupons_repo import CouponsRepo
from boostify.economy.coupons.errors import CouponValidationError
from boostify.economy.coupons.rules import no_coupon_quote, normalize_coupon_code, quote_coupon
from boostify.economy.coupons.types import CouponQuote, CouponTerms

logger = structlog.get_logger(__name__)


class CouponService:
    @staticmethod
    def _terms_from_model(coupon: Coupon) -> CouponTerms:
        return CouponTerms(
            code=coupon.code,
            discount_type=coupon.discount_type,
            discount_value=Decimal(coupon.discount_value),
            valid_from=coupon.valid_from,
            valid_until=coupon.valid_until,
            usage_count=coupon.usage_count,
            max_discount=coupon.max_discount,
            min_amount=coupon.min_amount,
            usage_limit=coupon.usage_limit,
            coupon_id=coupon.id,
            description=coupon.description,
        )

    @staticmethod
    async def validate(
        session: AsyncSession,
        *,
        code: str,
        amount: Decimal,
        now_utc: datetime,
    ) -> CouponQuote:
        normalized = normalize_coupon_code(code)
        coupon = await CouponsRepo.get_active_by_code(session, normalized)
        terms = CouponService._terms_from_model(coupon) if coupon is not None else None
        return quote_coupon(terms, amount=amount, now_utc=now_utc)

    @staticmethod
    async def quote_for_checkout(
        session: AsyncSession,
        *,
        code: str | None,
        amount: Decimal,
        now_utc: datetime,
    ) -> CouponQuote:
        if code is None or not code.strip():
            return no_coupon_quote(amount)

        quote = await CouponService.validate(session, code=code, amount=amount, now_utc=now_utc)
        if not quote.valid:
            raise CouponValidationError(quote.error)
        return quote

    @staticmethod
    async def record_usage(
        session: AsyncSession,
        *,
        code: str,
        user_id: UUID,
        order_id: UUID,
        discount_amount: Decimal,
        final_amount: Decimal,
        now_utc: datetime,
    ) -> bool:
        if discount_amount <= 0:
            return False

        coupon = await CouponsRepo.get_active_by_code(session, normalize_coupon_code(code))
        if coupon is None:
            logger.warning("coupon_usage_skipped_unknown_code", coupon_code=code, order_id=str(order_id))
            return False

        incremented = await CouponsRepo.increment_usage(session, coupon_id=coupon.id)
        if not incremented:
            logger.warning(
                "coupon_usage_limit_reached",
                coupon_id=coupon.id,
                order_id=str(order_id),
            )
            return False

        await CouponsRepo.create_usage(
            session,
            usage=CouponUsage(
                coupon_id=coupon.id,
                user_id=user_id,
                order_id=order_id,
                discount_amount=to_money(discount_amount),
                original_amount=to_money(final_amount + discount_amount),
                final_amount=to_money(final_amount),
                created_at=now_utc,
            ),
        )
        get_audit_sink().record(
            "coupon_usage_recorded",
            coupon_id=coupon.id,
            order_id=order_id,
            user_id=user_id,
            discount_amount=discount_amount,
        )
        return True
