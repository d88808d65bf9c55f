from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from boostify.economy.coupons.errors import CouponValidationError
from boostify.economy.coupons.service import CouponService
from tests.economy.settlement_fakes import NOW_UTC, FakeSession, InMemorySettlementStore


@pytest.fixture
def store(monkeypatch) -> InMemorySettlementStore:
    store = InMemorySettlementStore()
    store.install(monkeypatch)
    return store


@pytest.mark.asyncio
async def test_validate_normalizes_code(store) -> None:
    store.add_coupon("PERCENT10")

    quote = await CouponService.validate(FakeSession(), code=" percent10 ", amount=Decimal("50"), now_utc=NOW_UTC)

    assert quote.valid is True
    assert (quote.discount_amount, quote.final_amount) == (Decimal("5.00"), Decimal("45.00"))


@pytest.mark.asyncio
async def test_checkout_quote_without_code_is_full_price(store) -> None:
    quote = await CouponService.quote_for_checkout(FakeSession(), code="  ", amount=Decimal("50"), now_utc=NOW_UTC)
    assert quote.final_amount == Decimal("50.00")
    assert quote.code is None


@pytest.mark.asyncio
async def test_checkout_quote_rejects_unusable_code(store) -> None:
    store.add_coupon("FULL", usage_limit=1, usage_count=1)

    with pytest.raises(CouponValidationError, match="usage limit"):
        await CouponService.quote_for_checkout(FakeSession(), code="FULL", amount=Decimal("50"), now_utc=NOW_UTC)


@pytest.mark.asyncio
async def test_record_usage_increments_and_writes_usage(store) -> None:
    coupon = store.add_coupon("PERCENT10", usage_limit=2)
    user_id, order_id = uuid4(), uuid4()

    recorded = await CouponService.record_usage(
        FakeSession(),
        code="PERCENT10",
        user_id=user_id,
        order_id=order_id,
        discount_amount=Decimal("5"),
        final_amount=Decimal("45"),
        now_utc=NOW_UTC,
    )

    assert recorded is True
    assert coupon.usage_count == 1
    [usage] = store.coupon_usages
    assert usage.order_id == order_id
    assert usage.original_amount == Decimal("50.00")


@pytest.mark.asyncio
async def test_record_usage_respects_usage_limit(store) -> None:
    coupon = store.add_coupon("ONCE", usage_limit=1, usage_count=1)

    recorded = await CouponService.record_usage(
        FakeSession(),
        code="ONCE",
        user_id=uuid4(),
        order_id=uuid4(),
        discount_amount=Decimal("5"),
        final_amount=Decimal("45"),
        now_utc=NOW_UTC,
    )

    assert recorded is False
    assert coupon.usage_count == 1
    assert store.coupon_usages == []
