from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from boostify.core.money import ZERO, to_money
from boostify.economy.coupons.types import CouponQuote, CouponTerms

INVALID_COUPON_MESSAGE = "Invalid or expired coupon code"
OUTSIDE_WINDOW_MESSAGE = "Coupon is not valid at this time"
USAGE_LIMIT_MESSAGE = "Coupon has reached its usage limit"


def normalize_coupon_code(code: str) -> str:
    return code.strip().upper()


def rejection_reason(terms: CouponTerms, *, amount: Decimal, now_utc: datetime) -> str | None:
    if now_utc < terms.valid_from or now_utc > terms.valid_until:
        return OUTSIDE_WINDOW_MESSAGE
    if terms.min_amount is not None and amount < terms.min_amount:
        return f"Minimum order amount of ${to_money(terms.min_amount)} required"
    if terms.usage_limit is not None and terms.usage_count >= terms.usage_limit:
        return USAGE_LIMIT_MESSAGE
    return None


def calculate_discount(terms: CouponTerms, *, amount: Decimal) -> Decimal:
    if terms.discount_type == "percentage":
        discount = amount * terms.discount_value / Decimal(100)
        if terms.max_discount is not None and discount > terms.max_discount:
            discount = terms.max_discount
        discount = min(discount, amount)
    elif terms.discount_type == "fixed":
        discount = min(terms.discount_value, amount)
    else:
        discount = ZERO
    return to_money(discount)


def quote_coupon(terms: CouponTerms | None, *, amount: Decimal, now_utc: datetime) -> CouponQuote:
    """Price `amount` under the coupon. Never raises; an unusable coupon yields valid=False."""
    amount = to_money(amount)
    if terms is None:
        return CouponQuote(
            valid=False,
            original_amount=amount,
            discount_amount=ZERO,
            final_amount=amount,
            error=INVALID_COUPON_MESSAGE,
        )

    reason = rejection_reason(terms, amount=amount, now_utc=now_utc)
    if reason is not None:
        return CouponQuote(
            valid=False,
            original_amount=amount,
            discount_amount=ZERO,
            final_amount=amount,
            code=terms.code,
            coupon_id=terms.coupon_id,
            error=reason,
        )

    discount_amount = calculate_discount(terms, amount=amount)
    final_amount = to_money(max(ZERO, amount - discount_amount))
    return CouponQuote(
        valid=True,
        original_amount=amount,
        discount_amount=discount_amount,
        final_amount=final_amount,
        code=terms.code,
        coupon_id=terms.coupon_id,
        discount_type=terms.discount_type,
        discount_value=terms.discount_value,
        description=terms.description,
    )


def no_coupon_quote(amount: Decimal) -> CouponQuote:
    amount = to_money(amount)
    return CouponQuote(valid=True, original_amount=amount, discount_amount=ZERO, final_amount=amount)
