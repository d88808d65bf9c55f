from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import Field

from boostify.api.deps import CurrentUser, get_current_user
from boostify.db.session import SessionLocal
from boostify.economy.coupons.service import CouponService

from .api_models import ApiModel, Money

router = APIRouter(tags=["coupons"])


class ValidateCouponRequest(ApiModel):
    code: str = Field(min_length=1, max_length=64)
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)


class CouponDetails(ApiModel):
    code: str
    discount_type: str
    discount_value: Decimal
    description: str | None = None


class ValidateCouponResponse(ApiModel):
    valid: bool
    discount_amount: Money | None = None
    final_amount: Money | None = None
    coupon: CouponDetails | None = None
    error: str | None = None


@router.post(
    "/coupons/validate",
    response_model=ValidateCouponResponse,
    response_model_exclude_none=True,
)
async def validate_coupon(
    payload: ValidateCouponRequest,
    user: CurrentUser = Depends(get_current_user),
) -> ValidateCouponResponse:
    async with SessionLocal() as session:
        quote = await CouponService.validate(
            session,
            code=payload.code,
            amount=payload.amount,
            now_utc=datetime.now(timezone.utc),
        )

    if not quote.valid:
        return ValidateCouponResponse(valid=False, error=quote.error)
    return ValidateCouponResponse(
        valid=True,
        discount_amount=quote.discount_amount,
        final_amount=quote.final_amount,
        coupon=CouponDetails(
            code=quote.code or payload.code,
            discount_type=quote.discount_type or "",
            discount_value=quote.discount_value if quote.discount_value is not None else Decimal(0),
            description=quote.description,
        ),
    )
