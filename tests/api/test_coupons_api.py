from __future__ import annotations

from decimal import Decimal

from fastapi.testclient import TestClient

from boostify.economy.coupons.service import CouponService
from boostify.economy.coupons.types import CouponQuote
from boostify.main import app


def test_validate_coupon_requires_auth() -> None:
    response = TestClient(app).post("/coupons/validate", json={"code": "PERCENT10", "amount": 50})
    assert response.status_code == 401


def test_validate_coupon_returns_discount(monkeypatch, customer_client) -> None:
    client, _ = customer_client

    async def fake_validate(session, *, code, amount, now_utc):  # noqa: ARG001
        return CouponQuote(
            valid=True,
            original_amount=Decimal("50.00"),
            discount_amount=Decimal("5.00"),
            final_amount=Decimal("45.00"),
            code="PERCENT10",
            coupon_id=1,
            discount_type="percentage",
            discount_value=Decimal("10"),
        )

    monkeypatch.setattr(CouponService, "validate", fake_validate)

    response = client.post("/coupons/validate", json={"code": "percent10", "amount": 50})

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is True
    assert body["discountAmount"] == 5.0
    assert body["finalAmount"] == 45.0
    assert body["coupon"]["code"] == "PERCENT10"
    assert body["coupon"]["discountType"] == "percentage"
    assert "error" not in body


def test_invalid_coupon_is_still_200(monkeypatch, customer_client) -> None:
    client, _ = customer_client

    async def fake_validate(session, *, code, amount, now_utc):  # noqa: ARG001
        return CouponQuote(
            valid=False,
            original_amount=Decimal("50.00"),
            discount_amount=Decimal("0.00"),
            final_amount=Decimal("50.00"),
            error="Invalid or expired coupon code",
        )

    monkeypatch.setattr(CouponService, "validate", fake_validate)

    response = client.post("/coupons/validate", json={"code": "NOPE", "amount": 50})

    assert response.status_code == 200
    assert response.json() == {"valid": False, "error": "Invalid or expired coupon code"}


def test_validate_coupon_rejects_non_positive_amount(customer_client) -> None:
    client, _ = customer_client
    response = client.post("/coupons/validate", json={"code": "PERCENT10", "amount": 0})

    assert response.status_code == 400
    assert response.json()["error"].startswith("amount:")
