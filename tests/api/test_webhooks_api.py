from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

from fastapi.testclient import TestClient

from boostify.api.routes import webhooks as webhooks_routes
from boostify.economy.wallet.service import WalletService
from boostify.economy.wallet.types import DepositApplyResult
from boostify.main import app
from boostify.services.payments import ProcessorEvent, ProcessorPaymentIntent, WebhookSignatureError


class _Processor:
    def __init__(self, *, event: ProcessorEvent | None = None) -> None:
        self._event = event

    def construct_event(self, *, payload: bytes, signature: str) -> ProcessorEvent:  # noqa: ARG002
        if self._event is None:
            raise WebhookSignatureError("Invalid webhook signature")
        return self._event


def _intent(**metadata: str) -> ProcessorPaymentIntent:
    return ProcessorPaymentIntent(
        id="pi_deposit",
        status="succeeded",
        amount=Decimal("40.00"),
        currency="usd",
        metadata=metadata,
    )


def test_missing_signature_is_rejected() -> None:
    response = TestClient(app).post("/webhooks/stripe", content=b"{}")

    assert response.status_code == 400
    assert response.json() == {"error": "Missing signature"}


def test_invalid_signature_is_rejected(monkeypatch) -> None:
    monkeypatch.setattr(webhooks_routes, "get_payment_processor", lambda: _Processor())

    response = TestClient(app).post("/webhooks/stripe", content=b"{}", headers={"Stripe-Signature": "t=1,v1=bad"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid webhook signature"}


def test_non_deposit_event_is_acknowledged(monkeypatch) -> None:
    calls: list[str] = []

    async def fake_apply(session, *, intent, now_utc):  # noqa: ARG001
        calls.append(intent.id)

    event = ProcessorEvent(id="evt_1", type="payment_intent.succeeded", payment_intent=_intent(type="order"))
    monkeypatch.setattr(webhooks_routes, "get_payment_processor", lambda: _Processor(event=event))
    monkeypatch.setattr(WalletService, "apply_deposit", fake_apply)

    response = TestClient(app).post("/webhooks/stripe", content=b"{}", headers={"Stripe-Signature": "t=1,v1=ok"})

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert calls == []


def test_deposit_event_credits_wallet(monkeypatch) -> None:
    calls: list[str] = []

    async def fake_apply(session, *, intent, now_utc):  # noqa: ARG001
        calls.append(intent.id)
        return DepositApplyResult(
            payment_intent_id=intent.id,
            user_id=uuid4(),
            deposit_amount=Decimal("40.00"),
            cashback_amount=Decimal("1.00"),
            balance_after=Decimal("41.00"),
            idempotent_replay=False,
        )

    event = ProcessorEvent(
        id="evt_2",
        type="payment_intent.succeeded",
        payment_intent=_intent(type="balance_deposit", user_id=str(uuid4())),
    )
    monkeypatch.setattr(webhooks_routes, "get_payment_processor", lambda: _Processor(event=event))
    monkeypatch.setattr(WalletService, "apply_deposit", fake_apply)

    response = TestClient(app).post("/webhooks/stripe", content=b"{}", headers={"Stripe-Signature": "t=1,v1=ok"})

    assert response.status_code == 200
    assert calls == ["pi_deposit"]
