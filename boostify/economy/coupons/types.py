from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(slots=True, frozen=True)
class CouponTerms:
    code: str
    discount_type: str
    discount_value: Decimal
    valid_from: datetime
    valid_until: datetime
    usage_count: int
    max_discount: Decimal | None = None
    min_amount: Decimal | None = None
    usage_limit: int | None = None
    coupon_id: int | None = None
    description: str | None = None


@dataclass(slots=True, frozen=True)
class CouponQuote:
    valid: bool
    original_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    code: str | None = None
    coupon_id: int | None = None
    error: str | None = None
    discount_type: str | None = None
    discount_value: Decimal | None = None
    description: str | None = None
