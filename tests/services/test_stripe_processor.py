from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from typing import Any

import pytest
import stripe

from boostify.services import payments
from boostify.services.payments import PaymentProcessorError, StripePaymentProcessor, WebhookSignatureError


class _Resource:
    def __init__(
        self,
        calls: list[tuple[str, dict[str, Any]]],
        name: str,
        result: Any = None,
        error: Exception | None = None,
    ) -> None:
        self._calls = calls
        self._name = name
        self._result = result
        self._error = error

    def _record(self, action: str, kwargs: dict[str, Any]) -> Any:
        self._calls.append((f"{self._name}.{action}", kwargs))
        if self._error is not None:
            raise self._error
        return self._result

    def create(self, **kwargs: Any) -> Any:
        return self._record("create", kwargs)

    def retrieve(self, **kwargs: Any) -> Any:
        return self._record("retrieve", kwargs)

    def list(self, **kwargs: Any) -> Any:
        return self._record("list", kwargs)


def _raw_intent(**overrides: Any) -> dict[str, Any]:
    raw = {
        "id": "pi_123",
        "status": "succeeded",
        "amount": 4050,
        "currency": "usd",
        "metadata": {"type": "balance_deposit", "user_id": "u-1"},
        "client_secret": "pi_123_secret",
    }
    raw.update(overrides)
    return raw


def _processor(**resources: _Resource) -> StripePaymentProcessor:
    processor = StripePaymentProcessor(api_key="sk_test_unit", webhook_secret="whsec_unit")
    processor._client = SimpleNamespace(**resources)
    return processor


@pytest.mark.asyncio
async def test_create_payment_intent_sends_minor_units_and_split() -> None:
    calls: list[tuple[str, dict[str, Any]]] = []
    created = _raw_intent(status="requires_payment_method")
    processor = _processor(payment_intents=_Resource(calls, "payment_intents", result=created))

    intent = await processor.create_payment_intent(
        amount=Decimal("40.50"),
        currency="usd",
        metadata={"type": "balance_deposit"},
        application_fee_amount=2025,
        transfer_destination="acct_123",
    )

    name, kwargs = calls[0]
    assert name == "payment_intents.create"
    assert kwargs["params"]["amount"] == 4050
    assert kwargs["params"]["application_fee_amount"] == 2025
    assert kwargs["params"]["transfer_data"] == {"destination": "acct_123"}
    assert kwargs["options"] == {}
    assert intent.amount == Decimal("40.50")
    assert intent.client_secret == "pi_123_secret"
    assert intent.is_deposit is True


@pytest.mark.asyncio
async def test_create_payment_intent_without_destination_skips_split() -> None:
    calls: list[tuple[str, dict[str, Any]]] = []
    processor = _processor(payment_intents=_Resource(calls, "payment_intents", result=_raw_intent()))

    await processor.create_payment_intent(
        amount=Decimal("10"),
        currency="usd",
        metadata={},
        idempotency_key="checkout:1",
        application_fee_amount=500,
    )

    _, kwargs = calls[0]
    assert "application_fee_amount" not in kwargs["params"]
    assert "transfer_data" not in kwargs["params"]
    assert kwargs["options"] == {"idempotency_key": "checkout:1"}


@pytest.mark.asyncio
async def test_create_refund_passes_idempotency_key() -> None:
    calls: list[tuple[str, dict[str, Any]]] = []
    processor = _processor(refunds=_Resource(calls, "refunds", result={"id": "re_1", "status": "succeeded"}))

    refund = await processor.create_refund(
        payment_intent_id="pi_123",
        amount=Decimal("100"),
        idempotency_key="refund:abc",
        metadata={"order_id": "o-1"},
    )

    _, kwargs = calls[0]
    assert kwargs["params"]["amount"] == 10000
    assert kwargs["params"]["payment_intent"] == "pi_123"
    assert kwargs["options"] == {"idempotency_key": "refund:abc"}
    assert (refund.id, refund.status) == ("re_1", "succeeded")


@pytest.mark.asyncio
async def test_stripe_errors_become_processor_errors() -> None:
    calls: list[tuple[str, dict[str, Any]]] = []
    processor = _processor(
        payment_intents=_Resource(calls, "payment_intents", error=stripe.APIConnectionError("network unreachable"))
    )

    with pytest.raises(PaymentProcessorError, match="network unreachable"):
        await processor.retrieve_payment_intent("pi_missing")


@pytest.mark.asyncio
async def test_list_payment_intents_reads_page_data() -> None:
    calls: list[tuple[str, dict[str, Any]]] = []
    page = SimpleNamespace(data=[_raw_intent(id="pi_1"), _raw_intent(id="pi_2", metadata=None)])
    processor = _processor(payment_intents=_Resource(calls, "payment_intents", result=page))

    intents = await processor.list_payment_intents(limit=20)

    assert calls[0][1] == {"params": {"limit": 20}}
    assert [intent.id for intent in intents] == ["pi_1", "pi_2"]
    assert intents[1].metadata == {}


def test_construct_event_parses_payment_intent(monkeypatch) -> None:
    def fake_construct_event(payload: bytes, signature: str, secret: str) -> dict[str, Any]:
        assert (payload, signature, secret) == (b"{}", "t=1,v1=abc", "whsec_unit")
        return {"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": _raw_intent()}}

    monkeypatch.setattr(payments.stripe.Webhook, "construct_event", fake_construct_event)

    event = _processor().construct_event(payload=b"{}", signature="t=1,v1=abc")

    assert event.type == "payment_intent.succeeded"
    assert event.payment_intent is not None
    assert event.payment_intent.amount == Decimal("40.50")


def test_construct_event_rejects_bad_signature(monkeypatch) -> None:
    def fake_construct_event(payload: bytes, signature: str, secret: str) -> dict[str, Any]:
        raise stripe.SignatureVerificationError("bad signature", signature)

    monkeypatch.setattr(payments.stripe.Webhook, "construct_event", fake_construct_event)

    with pytest.raises(WebhookSignatureError):
        _processor().construct_event(payload=b"{}", signature="t=1,v1=bad")
